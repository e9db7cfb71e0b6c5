"""Legacy plugins: fixed in-process tool providers that predate skills.

Plugins are configured in a JSON file (``PLUGINS.json``) listing Python
import paths. Each path must resolve to an object implementing
:class:`LegacyPlugin`, or a zero-argument factory returning one.
"""
from __future__ import annotations

import importlib
import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from skillmesh_core.logging import get_logger
from skillmesh_core.types import SkillDescriptor, SkillTier, ToolResult

from skillmesh_skills.types import PluginConfig

if TYPE_CHECKING:
    import logging

    from skillmesh_core.types import ToolDescriptor
    from skillmesh_runtime.protocols.skill_store import SkillStore

    from skillmesh_skills.types import TriggerEvent

logger = get_logger("skills.plugins")


@dataclass(slots=True)
class PluginContext:
    """Handed to :meth:`LegacyPlugin.init`."""

    logger: logging.Logger
    config: dict[str, Any] = field(default_factory=dict)
    services: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class LegacyPlugin(Protocol):
    name: str
    version: str
    description: str
    tools: list[ToolDescriptor]

    async def init(self, context: PluginContext) -> None: ...
    async def shutdown(self) -> None: ...
    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult: ...


class LegacyPluginRegistry:
    """Routes tool calls to initialised legacy plugins by tool name.

    The first plugin to claim a tool name keeps it; later claims are
    logged and ignored.
    """

    def __init__(self) -> None:
        self._plugins: list[LegacyPlugin] = []
        self._tool_to_plugin: dict[str, LegacyPlugin] = {}
        self._by_name: dict[str, LegacyPlugin] = {}

    @classmethod
    async def load(
        cls,
        configs: list[PluginConfig],
        services: dict[str, Any] | None = None,
    ) -> LegacyPluginRegistry:
        """Import and initialise every enabled plugin in *configs*.

        A plugin that fails to import or initialise is logged and skipped.
        """
        registry = cls()
        for cfg in configs:
            if not cfg.enabled:
                logger.info("Plugin %s disabled, skipping", cfg.package)
                continue
            try:
                plugin = _import_plugin(cfg.package)
                context = PluginContext(
                    logger=get_logger(f"plugins.{plugin.name}"),
                    config=dict(cfg.config),
                    services=dict(services or {}),
                )
                await registry.register(plugin, context)
            except Exception:
                logger.exception("Failed to load plugin %s", cfg.package)

        logger.info(
            "Plugin loading complete: %d plugins, %d tools",
            len(registry._plugins), len(registry._tool_to_plugin),
        )
        return registry

    async def register(
        self,
        plugin: LegacyPlugin,
        context: PluginContext | None = None,
    ) -> None:
        """Initialise *plugin* and claim its tool names."""
        await plugin.init(
            context or PluginContext(logger=get_logger(f"plugins.{plugin.name}"))
        )

        for tool in plugin.tools:
            if tool.name in self._tool_to_plugin:
                logger.warning(
                    "Tool %s from plugin %s conflicts, skipping duplicate",
                    tool.name, plugin.name,
                )
                continue
            self._tool_to_plugin[tool.name] = plugin

        self._by_name[plugin.name] = plugin
        self._plugins.append(plugin)
        logger.info(
            "Plugin %s %s loaded: %s",
            plugin.name, plugin.version, ", ".join(t.name for t in plugin.tools),
        )

    def all_tools(self) -> list[ToolDescriptor]:
        """Tool definitions claimed by each plugin, tagged with the plugin name."""
        tools: list[ToolDescriptor] = []
        for name, plugin in self._tool_to_plugin.items():
            tool = next(t for t in plugin.tools if t.name == name)
            tools.append(
                tool if tool.owner_id else replace(tool, owner_id=plugin.name)
            )
        return tools

    def has_tool(self, tool_name: str) -> bool:
        return tool_name in self._tool_to_plugin

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        plugin = self._tool_to_plugin.get(tool_name)
        if plugin is None:
            return ToolResult(
                result=f"No plugin registered for tool: {tool_name}",
                is_error=True,
            )
        return await plugin.execute(tool_name, arguments)

    async def handle_trigger(self, plugin_name: str, event: TriggerEvent) -> str | None:
        """Forward *event* to the plugin's ``on_trigger`` hook, if any."""
        plugin = self._by_name.get(plugin_name)
        hook = getattr(plugin, "on_trigger", None)
        if hook is None:
            return None
        return await hook(event)

    async def shutdown(self) -> None:
        for plugin in self._plugins:
            try:
                await plugin.shutdown()
                logger.info("Plugin %s shut down", plugin.name)
            except Exception:
                logger.exception("Plugin %s shutdown error", plugin.name)


def _import_plugin(path: str) -> LegacyPlugin:
    """Resolve ``package.module`` or ``package.module:attr`` to a plugin.

    The attribute defaults to ``plugin``; classes and factories are called
    with no arguments.
    """
    module_name, _, attr = path.partition(":")
    module = importlib.import_module(module_name)
    target = getattr(module, attr or "plugin")
    if isinstance(target, type) or (
        callable(target) and not isinstance(target, LegacyPlugin)
    ):
        target = target()
    if not isinstance(target, LegacyPlugin):
        msg = f"{path} does not provide a LegacyPlugin"
        raise TypeError(msg)
    return target


def load_plugin_configs(path: Path | str) -> list[PluginConfig]:
    """Read PLUGINS.json. A missing or unreadable file yields no plugins."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not load %s, starting with no plugins: %s", path, exc)
        return []

    if not isinstance(raw, list):
        logger.warning("%s is not a list, ignoring", path)
        return []

    return [
        PluginConfig(
            package=str(entry["package"]),
            enabled=bool(entry.get("enabled", True)),
            config=dict(entry.get("config") or {}),
        )
        for entry in raw
        if isinstance(entry, dict) and "package" in entry
    ]


async def migrate_plugin_configs(
    configs: list[PluginConfig],
    store: SkillStore,
) -> int:
    """One-time copy of PLUGINS.json entries into the skill store.

    Skipped when the store already holds skills. Returns the number of
    descriptors written.
    """
    existing = await store.list_skills()
    if existing:
        logger.info(
            "%d skills already exist, skipping plugin migration", len(existing)
        )
        return 0

    migrated = 0
    for cfg in configs:
        # "acme.plugins.example:plugin" -> "example"
        skill_id = cfg.package.partition(":")[0].rsplit(".", 1)[-1]
        await store.upsert_skill(
            SkillDescriptor(
                id=skill_id,
                name=skill_id,
                tier=SkillTier.INSTRUCTION,
                description=f"Migrated from PLUGINS.json: {cfg.package}",
                enabled=cfg.enabled,
                config={**cfg.config, "legacyPlugin": True, "package": cfg.package},
            )
        )
        migrated += 1
        logger.info("Migrated plugin %s to skill %s", cfg.package, skill_id)

    logger.info("Plugin migration complete: %d migrated", migrated)
    return migrated
