"""Lifecycle state machines that gate an agent session.

A machine owns one closed set of states and a fixed table of legal
edges. :meth:`StateMachine.transition` validates the edge before touching
anything; on success it mutates the state and then calls, in registration
order, every listener registered for the target state. A rejected
transition raises :class:`~skillmesh_core.errors.IllegalTransitionError`
and leaves both the state and the listeners untouched.
"""
from __future__ import annotations

import enum
from collections.abc import Callable, Mapping
from typing import Generic, TypeVar

from skillmesh_core.errors import IllegalTransitionError
from skillmesh_core.logging import get_logger

logger = get_logger("agent.lifecycle")

S = TypeVar("S", bound=enum.Enum)

Listener = Callable[[], None]


class StateMachine(Generic[S]):
    """A finite-state controller over the enum ``S``."""

    def __init__(
        self,
        name: str,
        initial: S,
        transitions: Mapping[S, frozenset[S]],
    ) -> None:
        self._name = name
        self._state_type = type(initial)
        self._state = initial
        self._transitions = dict(transitions)
        self._listeners: dict[S, list[Listener]] = {s: [] for s in self._state_type}

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> S:
        return self._state

    @property
    def states(self) -> tuple[S, ...]:
        return tuple(self._state_type)

    def can_transition(self, to: S | str) -> bool:
        return self._coerce(to) in self._transitions.get(self._state, frozenset())

    def transition(self, to: S | str) -> None:
        """Move to *to*, then notify the listeners registered for it.

        Raises :class:`IllegalTransitionError` for an edge not in the
        table, self-loops included.
        """
        target = self._coerce(to)
        current = self._state
        if target not in self._transitions.get(current, frozenset()):
            raise IllegalTransitionError(current.value, target.value)

        logger.info(
            "%s state transition: %s -> %s", self._name, current.value, target.value,
            extra={"state": target.value},
        )
        self._state = target
        for listener in list(self._listeners[target]):
            listener()

    def on(self, state: S | str, listener: Listener) -> None:
        """Call *listener* every time the machine enters *state*."""
        self._listeners[self._coerce(state)].append(listener)

    def off(self, state: S | str, listener: Listener) -> None:
        listeners = self._listeners[self._coerce(state)]
        if listener in listeners:
            listeners.remove(listener)

    def _coerce(self, state: S | str) -> S:
        if isinstance(state, self._state_type):
            return state
        try:
            return self._state_type(state)
        except ValueError:
            msg = f"Unknown {self._name} state: {state!r}"
            raise ValueError(msg) from None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} state={self._state.value}>"


# ── Conversational agent ────────────────────────────────────────────


class ConversationState(enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    DRAINING = "draining"
    SHUTDOWN = "shutdown"


CONVERSATION_TRANSITIONS: Mapping[ConversationState, frozenset[ConversationState]] = {
    ConversationState.PENDING: frozenset({ConversationState.ACTIVE}),
    ConversationState.ACTIVE: frozenset({
        ConversationState.DRAINING,
        ConversationState.SHUTDOWN,
    }),
    ConversationState.DRAINING: frozenset({ConversationState.SHUTDOWN}),
    ConversationState.SHUTDOWN: frozenset(),
}


class ConversationStateMachine(StateMachine[ConversationState]):
    """pending -> active -> draining -> shutdown, with active -> shutdown."""

    def __init__(self, initial: ConversationState = ConversationState.PENDING) -> None:
        super().__init__("conversation", initial, CONVERSATION_TRANSITIONS)

    def activate(self) -> None:
        self.transition(ConversationState.ACTIVE)

    def drain(self) -> None:
        self.transition(ConversationState.DRAINING)

    def shutdown(self) -> None:
        self.transition(ConversationState.SHUTDOWN)

    def is_accepting_requests(self) -> bool:
        return self.state is ConversationState.ACTIVE

    def is_ready(self) -> bool:
        return self.state is ConversationState.ACTIVE


# ── Operations agent ────────────────────────────────────────────────


class OperationsState(enum.Enum):
    DEPLOY = "deploy"
    RUNTIME = "runtime"
    UPDATE = "update"
    SHUTDOWN = "shutdown"


OPERATIONS_TRANSITIONS: Mapping[OperationsState, frozenset[OperationsState]] = {
    OperationsState.DEPLOY: frozenset({OperationsState.RUNTIME, OperationsState.SHUTDOWN}),
    OperationsState.RUNTIME: frozenset({OperationsState.UPDATE, OperationsState.SHUTDOWN}),
    OperationsState.UPDATE: frozenset({OperationsState.RUNTIME, OperationsState.SHUTDOWN}),
    OperationsState.SHUTDOWN: frozenset(),
}


class OperationsStateMachine(StateMachine[OperationsState]):
    """deploy -> runtime <-> update, any live state -> shutdown."""

    def __init__(self, initial: OperationsState = OperationsState.DEPLOY) -> None:
        super().__init__("operations", initial, OPERATIONS_TRANSITIONS)

    def to_runtime(self) -> None:
        self.transition(OperationsState.RUNTIME)

    def to_update(self) -> None:
        self.transition(OperationsState.UPDATE)

    def shutdown(self) -> None:
        self.transition(OperationsState.SHUTDOWN)

    def is_accepting_requests(self) -> bool:
        return self.state is not OperationsState.SHUTDOWN

    def is_ready(self) -> bool:
        return self.state is OperationsState.RUNTIME
