"""RegisteredTool builders: catalog adapters and lifecycle transition tools."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from skillmesh_core.logging import get_logger
from skillmesh_core.types import ToolDescriptor, ToolResult

from skillmesh_agent.lifecycle import OperationsState
from skillmesh_agent.loop import RegisteredTool

if TYPE_CHECKING:
    from skillmesh_skills.unified import UnifiedToolRegistry

    from skillmesh_agent.loop import ToolHandler

logger = get_logger("agent.tools")


async def tools_from_registry(unified: UnifiedToolRegistry) -> list[RegisteredTool]:
    """Wrap every catalog entry in a handler routed through *unified*."""
    return [
        RegisteredTool(definition=tool, handler=_route(unified, tool.name))
        for tool in await unified.all_tool_definitions()
    ]


def _route(unified: UnifiedToolRegistry, name: str) -> ToolHandler:
    async def handler(arguments: dict[str, Any]) -> ToolResult:
        return await unified.execute(name, arguments)

    return handler


def transition_tools() -> list[RegisteredTool]:
    """``transition_to_runtime`` and ``transition_to_update``.

    Neither touches the state machine; each returns a transition intent
    that ends the current turn and is applied by the agent service.
    """

    async def to_runtime(arguments: dict[str, Any]) -> ToolResult:
        version = arguments.get("deployedVersion")
        logger.info("Transitioning to runtime mode (version %s)", version)
        suffix = f" (version {version})" if version else ""
        return ToolResult(
            result=f"Transitioning to runtime mode{suffix}.",
            state_transition=OperationsState.RUNTIME.value,
        )

    async def to_update(arguments: dict[str, Any]) -> ToolResult:
        version = arguments.get("targetVersion")
        logger.info("Transitioning to update mode (target %s)", version)
        return ToolResult(
            result=f"Transitioning to update mode (target: {version}).",
            state_transition=OperationsState.UPDATE.value,
        )

    return [
        RegisteredTool(
            definition=ToolDescriptor(
                name="transition_to_runtime",
                description=(
                    "Transition from deploy or update mode to runtime monitoring "
                    "mode. Call this after the deployment is complete and all "
                    "services are healthy."
                ),
                input_schema={
                    "type": "object",
                    "properties": {
                        "deployedVersion": {
                            "type": "string",
                            "description": "The version that was just deployed",
                        },
                    },
                },
            ),
            handler=to_runtime,
        ),
        RegisteredTool(
            definition=ToolDescriptor(
                name="transition_to_update",
                description=(
                    "Transition from runtime mode to update mode. Call this when "
                    "a new release is available and the user wants to update."
                ),
                input_schema={
                    "type": "object",
                    "properties": {
                        "targetVersion": {
                            "type": "string",
                            "description": "The version to update to",
                        },
                    },
                    "required": ["targetVersion"],
                },
            ),
            handler=to_update,
        ),
    ]
