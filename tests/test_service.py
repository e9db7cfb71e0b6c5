"""Tests for AgentService: state-driven reconfiguration."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from skillmesh_agent.gating import PromptLoader
from skillmesh_agent.lifecycle import (
    ConversationStateMachine,
    OperationsState,
    OperationsStateMachine,
)
from skillmesh_agent.model import ModelResponse
from skillmesh_agent.service import AgentService
from skillmesh_agent.tools import tools_from_registry, transition_tools
from skillmesh_core.types import ToolDescriptor, ToolResult
from skillmesh_skills.plugins import LegacyPluginRegistry
from skillmesh_skills.unified import UnifiedToolRegistry

if TYPE_CHECKING:
    from pathlib import Path


class OpsPlugin:
    def __init__(self, name: str = "ops", tools: tuple[str, ...] = ()) -> None:
        self.name = name
        self.version = "1.0.0"
        self.description = "cluster operations"
        self.tools = [ToolDescriptor(name=t, description=t) for t in tools]
        self.shut_down = False

    async def init(self, context) -> None:
        pass

    async def shutdown(self) -> None:
        self.shut_down = True

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        return ToolResult(result=f"{tool_name} ran")


@pytest.fixture
def prompts_dir(tmp_path: Path) -> Path:
    (tmp_path / "deploy.md").write_text("Deploy mode.", encoding="utf-8")
    (tmp_path / "runtime.md").write_text("Runtime mode.", encoding="utf-8")
    return tmp_path


@pytest.fixture
async def plugins():
    registry = LegacyPluginRegistry()
    await registry.register(
        OpsPlugin(tools=("get_pod_logs", "create_namespace", "check_for_updates"))
    )
    return registry


def _names(service: AgentService) -> list[str]:
    return [t.name for t in service.loop.tools]


class TestOperationsService:
    async def test_initial_state_gates_tools_and_prompt(
        self, scripted_model, prompts_dir, plugins
    ):
        service = await AgentService.create(
            scripted_model(ModelResponse(stop_reason="end_turn")),
            OperationsStateMachine(),
            PromptLoader(prompts_dir),
            unified=UnifiedToolRegistry(None, plugins),
            local_tools=transition_tools(),
            instructions=lambda: "## Skill: runbook",
        )

        assert _names(service) == ["transition_to_runtime", "get_pod_logs", "create_namespace"]
        assert service.loop.system_prompt == "Deploy mode.\n\n## Skill: runbook"

    async def test_transition_tool_reconfigures_and_clears(
        self, scripted_model, prompts_dir, plugins
    ):
        model = scripted_model(
            ModelResponse(
                stop_reason="tool_use",
                content=[{
                    "type": "tool_use",
                    "id": "t1",
                    "name": "transition_to_runtime",
                    "input": {"deployedVersion": "1.2.0"},
                }],
            )
        )
        machine = OperationsStateMachine()
        service = await AgentService.create(
            model,
            machine,
            PromptLoader(prompts_dir),
            unified=UnifiedToolRegistry(None, plugins),
            local_tools=transition_tools(),
        )

        result = await service.chat("all pods healthy")

        assert result.state_transition == "runtime"
        assert machine.state is OperationsState.RUNTIME
        assert _names(service) == ["transition_to_update", "get_pod_logs", "check_for_updates"]
        assert service.loop.system_prompt == "Runtime mode."
        assert service.loop.history == []

    async def test_every_transition_reconfigures(self, scripted_model, prompts_dir, plugins):
        machine = OperationsStateMachine()
        service = await AgentService.create(
            scripted_model(ModelResponse(stop_reason="end_turn")),
            machine,
            PromptLoader(prompts_dir, fallback="Generic."),
            unified=UnifiedToolRegistry(None, plugins),
            local_tools=transition_tools(),
        )

        machine.to_runtime()
        machine.to_update()
        assert service.loop.system_prompt == "Generic."
        assert "create_namespace" in _names(service)

        machine.shutdown()
        assert service.loop.tools == []
        assert not service.loop.has_tool("get_pod_logs")

    async def test_rejected_intent_leaves_state(self, scripted_model, prompts_dir, plugins):
        machine = OperationsStateMachine(initial=OperationsState.RUNTIME)
        service = await AgentService.create(
            scripted_model(ModelResponse(stop_reason="end_turn")),
            machine,
            PromptLoader(prompts_dir),
            unified=UnifiedToolRegistry(None, plugins),
        )

        assert service.apply_transition("runtime") is False
        assert service.apply_transition("bogus") is False
        assert machine.state is OperationsState.RUNTIME

    async def test_shutdown_state_refuses_chat(self, scripted_model, prompts_dir):
        model = scripted_model(ModelResponse(stop_reason="end_turn"))
        service = await AgentService.create(
            model,
            OperationsStateMachine(initial=OperationsState.SHUTDOWN),
            PromptLoader(prompts_dir),
        )

        result = await service.chat("hello")

        assert "not accepting requests" in result.response
        assert model.calls == []

    async def test_refresh_catalog_keeps_history(self, scripted_model, prompts_dir, plugins):
        model = scripted_model(
            ModelResponse(stop_reason="end_turn", content=[{"type": "text", "text": "ok"}])
        )
        service = await AgentService.create(
            model,
            OperationsStateMachine(initial=OperationsState.RUNTIME),
            PromptLoader(prompts_dir),
            unified=UnifiedToolRegistry(None, plugins),
        )
        await service.chat("status?")

        await plugins.register(OpsPlugin(name="scale", tools=("scale_deployment",)))
        await service.refresh_catalog()

        assert "scale_deployment" in _names(service)
        assert len(service.loop.history) == 1

    async def test_close_shuts_down_registry(self, scripted_model, prompts_dir):
        plugin = OpsPlugin(tools=("get_pod_logs",))
        registry = LegacyPluginRegistry()
        await registry.register(plugin)
        machine = OperationsStateMachine()
        service = await AgentService.create(
            scripted_model(ModelResponse(stop_reason="end_turn")),
            machine,
            PromptLoader(prompts_dir),
            unified=UnifiedToolRegistry(None, registry),
        )

        await service.close()
        machine.to_runtime()

        assert plugin.shut_down
        assert service.loop.system_prompt == "Deploy mode."


class TestConversationService:
    async def test_tools_only_while_active(self, scripted_model, tmp_path, plugins):
        machine = ConversationStateMachine()
        service = await AgentService.create(
            scripted_model(ModelResponse(stop_reason="end_turn")),
            machine,
            PromptLoader(tmp_path, fallback="Chat."),
            unified=UnifiedToolRegistry(None, plugins),
        )
        assert service.loop.tools == []

        machine.activate()
        assert _names(service) == ["get_pod_logs", "create_namespace", "check_for_updates"]

        machine.drain()
        assert service.loop.tools == []


class TestRegistryTools:
    async def test_handlers_route_through_unified(self, plugins):
        tools = await tools_from_registry(UnifiedToolRegistry(None, plugins))

        by_name = {t.name: t for t in tools}
        result = await by_name["get_pod_logs"].handler({})

        assert result.result == "get_pod_logs ran"

    async def test_transition_tools_return_intents(self):
        runtime, update = transition_tools()

        to_runtime = await runtime.handler({"deployedVersion": "2.0"})
        to_update = await update.handler({"targetVersion": "2.1"})

        assert to_runtime.state_transition == "runtime"
        assert to_runtime.result == "Transitioning to runtime mode (version 2.0)."
        assert to_update.state_transition == "update"
        assert to_update.result == "Transitioning to update mode (target: 2.1)."
