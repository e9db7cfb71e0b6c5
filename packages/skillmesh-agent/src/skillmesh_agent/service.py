"""AgentService: binds a lifecycle machine, a tool catalog and an AgentLoop.

The service is the only thing that reconfigures the loop. It listens on
every state of its machine; entering any state rebuilds the state's tool
subset and prompt, calls :meth:`AgentLoop.reconfigure`, then clears the
conversation history.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from skillmesh_core.errors import IllegalTransitionError
from skillmesh_core.logging import get_logger

from skillmesh_agent.gating import build_tools_for_state
from skillmesh_agent.loop import AgentLoop, AgentTurnResult
from skillmesh_agent.tools import tools_from_registry

if TYPE_CHECKING:
    import enum
    from collections.abc import Callable, Mapping, Sequence

    from skillmesh_skills.unified import UnifiedToolRegistry

    from skillmesh_agent.gating import PromptLoader
    from skillmesh_agent.lifecycle import (
        ConversationStateMachine,
        OperationsStateMachine,
    )
    from skillmesh_agent.loop import RegisteredTool
    from skillmesh_agent.model import ModelClient

    GatedMachine = ConversationStateMachine | OperationsStateMachine

logger = get_logger("agent.service")


class AgentService:
    """Owns one agent session and keeps it in step with its state machine.

    ``local_tools`` are served in-process (transition tools, for one);
    the rest of the catalog comes from ``unified``. A local tool hides a
    registry tool with the same name.
    """

    def __init__(
        self,
        machine: GatedMachine,
        loop: AgentLoop,
        prompts: PromptLoader,
        *,
        unified: UnifiedToolRegistry | None = None,
        local_tools: Sequence[RegisteredTool] = (),
        instructions: Callable[[], str] | None = None,
        allow_sets: Mapping[enum.Enum, frozenset[str] | None] | None = None,
    ) -> None:
        self._machine = machine
        self._loop = loop
        self._prompts = prompts
        self._unified = unified
        self._local_tools = list(local_tools)
        self._instructions = instructions
        self._allow_sets = allow_sets
        self._catalog: list[RegisteredTool] = list(self._local_tools)

        for state in machine.states:
            machine.on(state, self._on_state_entered)
        self._reconfigure()

    @classmethod
    async def create(
        cls,
        model: ModelClient,
        machine: GatedMachine,
        prompts: PromptLoader,
        *,
        unified: UnifiedToolRegistry | None = None,
        local_tools: Sequence[RegisteredTool] = (),
        instructions: Callable[[], str] | None = None,
        allow_sets: Mapping[enum.Enum, frozenset[str] | None] | None = None,
        max_iterations: int = 20,
    ) -> AgentService:
        """Build the loop for the machine's current state and load the catalog."""
        loop = AgentLoop(model, "", max_iterations=max_iterations)
        service = cls(
            machine,
            loop,
            prompts,
            unified=unified,
            local_tools=local_tools,
            instructions=instructions,
            allow_sets=allow_sets,
        )
        await service.refresh_catalog()
        return service

    @property
    def machine(self) -> GatedMachine:
        return self._machine

    @property
    def loop(self) -> AgentLoop:
        return self._loop

    def catalog(self) -> list[RegisteredTool]:
        return list(self._catalog)

    async def refresh_catalog(self) -> None:
        """Re-read the unified catalog and re-gate it for the current state.

        History is kept; only a state change clears it.
        """
        catalog = list(self._local_tools)
        if self._unified is not None:
            local_names = {t.name for t in catalog}
            for tool in await tools_from_registry(self._unified):
                if tool.name in local_names:
                    logger.warning("Registry tool %s hidden by local tool", tool.name)
                    continue
                catalog.append(tool)
        self._catalog = catalog
        self._reconfigure()

    async def chat(self, message: str) -> AgentTurnResult:
        """Run one turn, then apply any transition a tool asked for."""
        if not self._machine.is_accepting_requests():
            return AgentTurnResult(
                response=f"Agent is not accepting requests (state: {self._machine.state.value})."
            )

        result = await self._loop.chat(message)
        if result.state_transition is not None:
            self.apply_transition(result.state_transition)
        return result

    def apply_transition(self, target: str) -> bool:
        """Drive the machine to *target*; an illegal intent is logged, not raised."""
        try:
            self._machine.transition(target)
        except (IllegalTransitionError, ValueError) as exc:
            logger.error("Rejected transition intent %s: %s", target, exc)
            return False
        return True

    async def close(self) -> None:
        for state in self._machine.states:
            self._machine.off(state, self._on_state_entered)
        if self._unified is not None:
            await self._unified.shutdown()

    # ── Internals ───────────────────────────────────────────────────

    def _on_state_entered(self) -> None:
        self._reconfigure()
        self._loop.clear_history()

    def _reconfigure(self) -> None:
        state = self._machine.state
        tools = build_tools_for_state(state, self._catalog, self._allow_sets)
        self._loop.reconfigure(self._prompt_for(state), tools)

    def _prompt_for(self, state: enum.Enum) -> str:
        prompt = self._prompts.load(state)
        if self._instructions is None:
            return prompt
        extra = self._instructions()
        return f"{prompt}\n\n{extra}" if extra else prompt
