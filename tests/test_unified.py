"""Tests for legacy plugins and the unified tool registry."""
from __future__ import annotations

import json
import textwrap
from typing import TYPE_CHECKING, Any

import pytest
from skillmesh_core.types import SkillDescriptor, SkillTier, ToolDescriptor, ToolResult
from skillmesh_skills.plugins import (
    LegacyPluginRegistry,
    PluginContext,
    load_plugin_configs,
    migrate_plugin_configs,
)
from skillmesh_skills.registry import SkillRegistry
from skillmesh_skills.types import PluginConfig, TriggerEvent
from skillmesh_skills.unified import UnifiedToolRegistry

if TYPE_CHECKING:
    from pathlib import Path

# ── Helpers ──────────────────────────────────────────────────────────


class EchoPlugin:
    def __init__(
        self,
        name: str = "legacy",
        tools: tuple[str, ...] = ("search",),
        fail_shutdown: bool = False,
    ) -> None:
        self.name = name
        self.version = "1.0.0"
        self.description = "Echoes tool names"
        self.tools = [ToolDescriptor(name=t, description=f"legacy {t}") for t in tools]
        self.fail_shutdown = fail_shutdown
        self.context: PluginContext | None = None
        self.shut_down = False
        self.triggers: list[TriggerEvent] = []

    async def init(self, context: PluginContext) -> None:
        self.context = context

    async def shutdown(self) -> None:
        if self.fail_shutdown:
            raise RuntimeError("shutdown failed")
        self.shut_down = True

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        return ToolResult(result=f"legacy {tool_name}")

    async def on_trigger(self, event: TriggerEvent) -> str:
        self.triggers.append(event)
        return f"handled {event.event}"


class BrokenSkills:
    def has_tool(self, name: str) -> bool:
        return False

    async def all_tools(self) -> list[ToolDescriptor]:
        return []

    async def shutdown(self) -> None:
        raise RuntimeError("skills shutdown failed")


def _web() -> SkillDescriptor:
    return SkillDescriptor(
        id="web", name="web", tier=SkillTier.SERVICE, http_url="http://web/mcp"
    )


# ── Legacy plugins ───────────────────────────────────────────────────


class TestLegacyPluginRegistry:
    async def test_register_and_execute(self):
        plugins = LegacyPluginRegistry()
        plugin = EchoPlugin()
        await plugins.register(plugin)

        assert plugin.context is not None
        assert plugins.has_tool("search")
        result = await plugins.execute("search", {})
        assert result.result == "legacy search"

    async def test_all_tools_tagged_with_plugin_name(self):
        plugins = LegacyPluginRegistry()
        await plugins.register(EchoPlugin(name="files", tools=("read", "write")))

        tools = plugins.all_tools()
        assert [(t.name, t.owner_id) for t in tools] == [("read", "files"), ("write", "files")]

    async def test_first_plugin_keeps_name(self):
        plugins = LegacyPluginRegistry()
        await plugins.register(EchoPlugin(name="a", tools=("search",)))
        await plugins.register(EchoPlugin(name="b", tools=("search", "other")))

        assert [(t.name, t.owner_id) for t in plugins.all_tools()] == [
            ("search", "a"),
            ("other", "b"),
        ]

    async def test_unknown_tool_is_result(self):
        result = await LegacyPluginRegistry().execute("nope", {})
        assert result.is_error
        assert result.result == "No plugin registered for tool: nope"

    async def test_handle_trigger(self):
        plugins = LegacyPluginRegistry()
        plugin = EchoPlugin(name="cron")
        await plugins.register(plugin)

        reply = await plugins.handle_trigger("cron", TriggerEvent(source="cron", event="tick"))

        assert reply == "handled tick"
        assert await plugins.handle_trigger("missing", TriggerEvent("x", "y")) is None

    async def test_shutdown_isolates_failures(self):
        plugins = LegacyPluginRegistry()
        bad = EchoPlugin(name="bad", tools=("a",), fail_shutdown=True)
        good = EchoPlugin(name="good", tools=("b",))
        await plugins.register(bad)
        await plugins.register(good)

        await plugins.shutdown()

        assert good.shut_down

    async def test_load_imports_plugins(self, tmp_path: Path, monkeypatch):
        (tmp_path / "demo_plugin.py").write_text(
            textwrap.dedent("""\
                from skillmesh_core.types import ToolDescriptor, ToolResult

                class DemoPlugin:
                    name = "demo"
                    version = "0.1.0"
                    description = "demo"
                    tools = [ToolDescriptor(name="demo_tool", description="d")]

                    async def init(self, context):
                        self.config = context.config

                    async def shutdown(self):
                        pass

                    async def execute(self, tool_name, arguments):
                        return ToolResult(result=self.config["greeting"])
            """),
            encoding="utf-8",
        )
        monkeypatch.syspath_prepend(str(tmp_path))

        plugins = await LegacyPluginRegistry.load([
            PluginConfig(package="demo_plugin:DemoPlugin", config={"greeting": "hi"}),
            PluginConfig(package="demo_plugin:DemoPlugin", enabled=False),
            PluginConfig(package="no_such_module_here"),
        ])

        assert [t.name for t in plugins.all_tools()] == ["demo_tool"]
        assert (await plugins.execute("demo_tool", {})).result == "hi"


class TestPluginConfigs:
    def test_missing_file_yields_nothing(self, tmp_path: Path) -> None:
        assert load_plugin_configs(tmp_path / "PLUGINS.json") == []

    def test_parses_entries(self, tmp_path: Path) -> None:
        path = tmp_path / "PLUGINS.json"
        path.write_text(
            json.dumps([
                {"package": "acme.plugins.files", "config": {"root": "/srv"}},
                {"package": "acme.plugins.cron", "enabled": False},
                {"config": {}},
            ]),
            encoding="utf-8",
        )

        configs = load_plugin_configs(path)

        assert configs == [
            PluginConfig(package="acme.plugins.files", config={"root": "/srv"}),
            PluginConfig(package="acme.plugins.cron", enabled=False),
        ]

    async def test_migrate_into_empty_store(self, memory_skill_store):
        migrated = await migrate_plugin_configs(
            [PluginConfig(package="acme.plugins.files:plugin", config={"root": "/srv"})],
            memory_skill_store,
        )

        assert migrated == 1
        skill = await memory_skill_store.get_skill("files")
        assert skill is not None
        assert skill.tier is SkillTier.INSTRUCTION
        assert skill.config["legacyPlugin"] is True
        assert skill.config["root"] == "/srv"

    async def test_migrate_skipped_when_store_has_skills(self, memory_skill_store):
        await memory_skill_store.upsert_skill(_web())

        migrated = await migrate_plugin_configs(
            [PluginConfig(package="acme.plugins.files")], memory_skill_store
        )

        assert migrated == 0
        assert await memory_skill_store.get_skill("files") is None


# ── Unified registry ─────────────────────────────────────────────────


@pytest.fixture
async def unified(tool_clients, client_factory):
    client_factory.tools["http://web/mcp"] = ["search", "fetch"]
    skills = SkillRegistry(tool_clients)
    await skills.load([_web()])

    plugins = LegacyPluginRegistry()
    await plugins.register(EchoPlugin(name="legacy", tools=("search", "read_file")))
    return UnifiedToolRegistry(skills, plugins)


class TestUnifiedToolRegistry:
    async def test_skill_shadows_legacy_tool(self, unified):
        tools = await unified.all_tool_definitions()

        search = [t for t in tools if t.name == "search"]
        assert len(search) == 1
        assert search[0].owner_id == "web"
        assert [t.name for t in tools] == ["search", "fetch", "read_file"]
        assert unified.shadowed == {"search"}

    async def test_execute_prefers_skill(self, unified):
        result = await unified.execute("search", {})
        assert result.result == "search ok"

    async def test_execute_falls_through_to_legacy(self, unified):
        assert unified.has_tool("read_file")
        result = await unified.execute("read_file", {})
        assert result.result == "legacy read_file"

    async def test_missing_provider_is_result(self, unified):
        assert not unified.has_tool("ghost-tool")

        result = await unified.execute("ghost-tool", {})

        assert isinstance(result, ToolResult)
        assert result.is_error
        assert "No skill or plugin registered for tool: ghost-tool" in result.result

    async def test_legacy_serves_name_after_skill_drops(self, unified, client_factory):
        await client_factory.latest().message_handler(EOFError("closed"))

        assert (await unified.execute("search", {})).result == "legacy search"
        names = [t.name for t in await unified.all_tool_definitions()]
        assert names == ["search", "read_file"]

    async def test_without_skill_registry(self):
        plugins = LegacyPluginRegistry()
        await plugins.register(EchoPlugin())
        unified = UnifiedToolRegistry(None, plugins)

        assert [t.name for t in await unified.all_tool_definitions()] == ["search"]
        assert (await unified.execute("search", {})).result == "legacy search"

    async def test_shutdown_runs_both_sides(self):
        plugins = LegacyPluginRegistry()
        plugin = EchoPlugin()
        await plugins.register(plugin)
        unified = UnifiedToolRegistry(BrokenSkills(), plugins)

        await unified.shutdown()

        assert plugin.shut_down

    async def test_shutdown_closes_skill_connections(self, unified, client_factory):
        await unified.shutdown()
        assert client_factory.latest().close_count == 1
