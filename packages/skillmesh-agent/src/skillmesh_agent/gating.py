"""Per-state tool allow-sets and state prompts."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from skillmesh_core.logging import get_logger

from skillmesh_agent.lifecycle import ConversationState, OperationsState

if TYPE_CHECKING:
    import enum
    from collections.abc import Mapping, Sequence

    from skillmesh_agent.loop import RegisteredTool

logger = get_logger("agent.gating")

_DEPLOY_TOOLS = frozenset({
    "create_namespace",
    "create_secret",
    "create_configmap",
    "create_deployment",
    "create_service",
    "apply_network_policy",
    "check_pod_health",
    "get_pod_logs",
    "wait_for_rollout",
    "fetch_release_manifest",
})

STATE_TOOLS: Mapping[OperationsState, frozenset[str]] = {
    OperationsState.DEPLOY: _DEPLOY_TOOLS | {"ask_user", "transition_to_runtime"},
    OperationsState.RUNTIME: frozenset({
        "check_pod_health",
        "get_pod_logs",
        "get_cluster_status",
        "verify_image_integrity",
        "restart_deployment",
        "scale_deployment",
        "check_for_updates",
        "transition_to_update",
    }),
    OperationsState.UPDATE: _DEPLOY_TOOLS | {
        "backup_state",
        "rollback",
        "transition_to_runtime",
    },
    OperationsState.SHUTDOWN: frozenset(),
}

# None means "every tool in the catalog".
CONVERSATION_STATE_TOOLS: Mapping[ConversationState, frozenset[str] | None] = {
    ConversationState.PENDING: frozenset(),
    ConversationState.ACTIVE: None,
    ConversationState.DRAINING: frozenset(),
    ConversationState.SHUTDOWN: frozenset(),
}


def allow_set_for(
    state: enum.Enum,
    allow_sets: Mapping[enum.Enum, frozenset[str] | None] | None = None,
) -> frozenset[str] | None:
    if allow_sets is None:
        if isinstance(state, OperationsState):
            allow_sets = STATE_TOOLS
        elif isinstance(state, ConversationState):
            allow_sets = CONVERSATION_STATE_TOOLS
        else:
            msg = f"No allow-sets known for state {state!r}"
            raise TypeError(msg)
    return allow_sets.get(state, frozenset())


def build_tools_for_state(
    state: enum.Enum,
    tools: Sequence[RegisteredTool],
    allow_sets: Mapping[enum.Enum, frozenset[str] | None] | None = None,
) -> list[RegisteredTool]:
    """Catalog ∩ allow-set for *state*, keeping catalog order."""
    allowed = allow_set_for(state, allow_sets)
    filtered = [t for t in tools if allowed is None or t.name in allowed]
    logger.info("Built tool set for state %s: %d tools", state.value, len(filtered))
    return filtered


class PromptLoader:
    """Loads ``<prompts_dir>/<state>.md``, falling back to a generic prompt."""

    def __init__(self, prompts_dir: Path | str, fallback: str | None = None) -> None:
        self._dir = Path(prompts_dir)
        self._fallback = fallback

    def load(self, state: enum.Enum | str) -> str:
        name = state if isinstance(state, str) else state.value
        path = self._dir / f"{name}.md"
        try:
            return path.read_text(encoding="utf-8")
        except OSError:
            logger.warning("No prompt at %s, using fallback", path)
            if self._fallback is not None:
                return self._fallback
            return f"You are operating in {name} mode."
