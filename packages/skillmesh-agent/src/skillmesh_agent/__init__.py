"""skillmesh agent: lifecycle state machines, state gating, and the agent loop."""
from __future__ import annotations

from skillmesh_agent.gating import (
    CONVERSATION_STATE_TOOLS,
    STATE_TOOLS,
    PromptLoader,
    build_tools_for_state,
)
from skillmesh_agent.lifecycle import (
    ConversationState,
    ConversationStateMachine,
    OperationsState,
    OperationsStateMachine,
    StateMachine,
)
from skillmesh_agent.loop import (
    MAX_ITERATIONS_RESPONSE,
    AgentLoop,
    AgentTurnResult,
    RegisteredTool,
)
from skillmesh_agent.model import LiteLLMModelClient, ModelClient, ModelResponse
from skillmesh_agent.service import AgentService
from skillmesh_agent.tools import tools_from_registry, transition_tools

__all__ = [
    "CONVERSATION_STATE_TOOLS",
    "MAX_ITERATIONS_RESPONSE",
    "STATE_TOOLS",
    "AgentLoop",
    "AgentService",
    "AgentTurnResult",
    "ConversationState",
    "ConversationStateMachine",
    "LiteLLMModelClient",
    "ModelClient",
    "ModelResponse",
    "OperationsState",
    "OperationsStateMachine",
    "PromptLoader",
    "RegisteredTool",
    "StateMachine",
    "build_tools_for_state",
    "tools_from_registry",
    "transition_tools",
]
