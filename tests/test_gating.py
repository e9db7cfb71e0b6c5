"""Tests for state allow-sets and prompt loading."""
from __future__ import annotations

from typing import TYPE_CHECKING

from skillmesh_agent.gating import STATE_TOOLS, PromptLoader, build_tools_for_state
from skillmesh_agent.lifecycle import ConversationState, OperationsState
from skillmesh_agent.loop import RegisteredTool
from skillmesh_core.types import ToolDescriptor, ToolResult

if TYPE_CHECKING:
    from pathlib import Path


def _tool(name: str) -> RegisteredTool:
    async def handler(arguments):
        return ToolResult(result=name)

    return RegisteredTool(definition=ToolDescriptor(name=name, description=name), handler=handler)


CATALOG = [
    _tool(name)
    for name in (
        "get_pod_logs",
        "create_namespace",
        "check_for_updates",
        "rollback",
        "transition_to_runtime",
        "transition_to_update",
        "web_search",
    )
]


class TestBuildToolsForState:
    def test_intersection_keeps_catalog_order(self) -> None:
        tools = build_tools_for_state(OperationsState.RUNTIME, CATALOG)
        assert [t.name for t in tools] == [
            "get_pod_logs",
            "check_for_updates",
            "transition_to_update",
        ]

    def test_handler_pairing_kept(self) -> None:
        tools = build_tools_for_state(OperationsState.UPDATE, CATALOG)
        by_name = {t.name: t for t in CATALOG}
        assert all(t is by_name[t.name] for t in tools)
        assert "rollback" in {t.name for t in tools}

    def test_shutdown_allows_nothing(self) -> None:
        assert STATE_TOOLS[OperationsState.SHUTDOWN] == frozenset()
        assert build_tools_for_state(OperationsState.SHUTDOWN, CATALOG) == []
        assert build_tools_for_state(ConversationState.SHUTDOWN, CATALOG) == []

    def test_conversation_active_allows_all(self) -> None:
        assert build_tools_for_state(ConversationState.ACTIVE, CATALOG) == CATALOG
        assert build_tools_for_state(ConversationState.PENDING, CATALOG) == []

    def test_custom_allow_sets(self) -> None:
        allow = {ConversationState.ACTIVE: frozenset({"web_search"})}
        tools = build_tools_for_state(ConversationState.ACTIVE, CATALOG, allow)
        assert [t.name for t in tools] == ["web_search"]


class TestPromptLoader:
    def test_reads_state_file(self, tmp_path: Path) -> None:
        (tmp_path / "runtime.md").write_text("Watch the cluster.", encoding="utf-8")
        loader = PromptLoader(tmp_path)
        assert loader.load(OperationsState.RUNTIME) == "Watch the cluster."

    def test_fallback(self, tmp_path: Path) -> None:
        assert PromptLoader(tmp_path, fallback="Default.").load("update") == "Default."
        assert PromptLoader(tmp_path).load(OperationsState.DEPLOY) == (
            "You are operating in deploy mode."
        )
