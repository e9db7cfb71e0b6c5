"""AgentLoop: the bounded "call model, run tools, repeat" cycle."""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from skillmesh_core.errors import AgentBusyError
from skillmesh_core.logging import get_logger
from skillmesh_core.types import ToolDescriptor, ToolResult

from skillmesh_agent.model import END_TURN, TOOL_USE

if TYPE_CHECKING:
    from collections.abc import Sequence

    from skillmesh_agent.model import ModelClient

logger = get_logger("agent.loop")

DEFAULT_MAX_ITERATIONS = 20
MAX_ITERATIONS_RESPONSE = "Reached maximum tool-use iterations."
TRANSITION_RESPONSE = "State transition initiated."
NO_RESPONSE = "(no response)"

ToolHandler = Callable[[dict[str, Any]], Awaitable[ToolResult]]


@dataclass(frozen=True, slots=True)
class RegisteredTool:
    """A tool definition paired with the coroutine that runs it."""

    definition: ToolDescriptor
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.name


@dataclass(frozen=True, slots=True)
class AgentTurnResult:
    response: str
    state_transition: str | None = None


class AgentLoop:
    """One agent session: history, active prompt and active tool set.

    ``chat()`` is not reentrant; a call made while another is still
    running raises :class:`AgentBusyError`. :meth:`reconfigure` and
    :meth:`clear_history` are meant to run between turns.
    """

    def __init__(
        self,
        model: ModelClient,
        system_prompt: str,
        tools: Sequence[RegisteredTool] = (),
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        role: str = "agent",
    ) -> None:
        self._model = model
        self._system_prompt = system_prompt
        self._tools: dict[str, RegisteredTool] = {t.name: t for t in tools}
        self._max_iterations = max_iterations
        self._role = role
        self._history: list[dict[str, Any]] = []
        self._busy = False

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    @property
    def tools(self) -> list[RegisteredTool]:
        return list(self._tools.values())

    @property
    def history(self) -> list[dict[str, Any]]:
        return list(self._history)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Run an active tool directly; inactive names get a no-provider result."""
        tool = self._tools.get(name)
        if tool is None:
            return ToolResult.no_provider(name)
        return await tool.handler(arguments)

    # ── Session control ─────────────────────────────────────────────

    def reconfigure(self, system_prompt: str, tools: Sequence[RegisteredTool]) -> None:
        """Swap prompt and tool set together."""
        self._system_prompt = system_prompt
        self._tools = {t.name: t for t in tools}
        logger.info("Agent reconfigured with %d tools", len(self._tools))

    def clear_history(self) -> None:
        self._history.clear()
        logger.info("Conversation history cleared")

    # ── Turn ────────────────────────────────────────────────────────

    async def chat(self, message: str) -> AgentTurnResult:
        if self._busy:
            msg = "chat() called while a previous turn is still running"
            raise AgentBusyError(msg)

        self._busy = True
        try:
            return await self._run(message)
        finally:
            self._busy = False

    async def _run(self, message: str) -> AgentTurnResult:
        self._history.append({"role": "user", "content": message})
        system = [{"type": "text", "text": self._system_prompt}]

        for iteration in range(1, self._max_iterations + 1):
            response = await self._model.chat(
                role=self._role,
                system=system,
                tools=[t.definition.to_dict() for t in self._tools.values()],
                messages=list(self._history),
            )

            if response.stop_reason == END_TURN:
                return AgentTurnResult(response=response.text())

            if response.stop_reason != TOOL_USE:
                logger.warning("Unexpected stop reason: %s", response.stop_reason)
                return AgentTurnResult(response=response.text() or NO_RESPONSE)

            self._history.append({"role": "assistant", "content": response.content})

            transition: str | None = None
            results: list[dict[str, Any]] = []
            for block in response.tool_uses():
                result = await self._run_tool(block)
                if result.state_transition:
                    transition = result.state_transition
                entry: dict[str, Any] = {
                    "type": "tool_result",
                    "tool_use_id": block.get("id"),
                    "content": result.result,
                }
                if result.is_error:
                    entry["is_error"] = True
                results.append(entry)

            self._history.append({"role": "user", "content": results})

            if transition is not None:
                logger.info("Tool requested state transition to %s", transition)
                return AgentTurnResult(
                    response=response.text() or TRANSITION_RESPONSE,
                    state_transition=transition,
                )

            logger.debug("Iteration %d/%d done", iteration, self._max_iterations)

        logger.warning("Reached maximum tool-use iterations (%d)", self._max_iterations)
        return AgentTurnResult(response=MAX_ITERATIONS_RESPONSE)

    async def _run_tool(self, block: dict[str, Any]) -> ToolResult:
        name = str(block.get("name", ""))
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("Model requested unknown tool %s", name)
            return ToolResult(result=f"Unknown tool: {name}", is_error=True)

        logger.info("Executing tool %s", name)
        try:
            return await tool.handler(dict(block.get("input") or {}))
        except Exception as exc:
            logger.error("Tool %s failed: %s", name, exc, exc_info=True)
            return ToolResult(result=f"Error: {exc}", is_error=True)
