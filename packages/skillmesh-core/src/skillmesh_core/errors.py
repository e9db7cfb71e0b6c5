from __future__ import annotations


class SkillmeshError(Exception):
    """Base exception for all skillmesh errors."""


# ── Config Errors ────────────────────────────────────────────────────

class ConfigError(SkillmeshError):
    """Invalid or missing configuration."""


# ── Skill Errors ─────────────────────────────────────────────────────

class SkillError(SkillmeshError):
    """Base for skill-related errors."""


class SkillNotFoundError(SkillError):
    """Skill not found in the store."""


class SkillValidationError(SkillError):
    """Skill definition is invalid."""


# ── Transport Errors ─────────────────────────────────────────────────

class TransportError(SkillmeshError):
    """Base for tool transport errors."""


class SkillConnectionError(TransportError):
    """Connecting to a tool server failed."""

    def __init__(self, skill_id: str, reason: str) -> None:
        super().__init__(f"Failed to connect skill {skill_id!r}: {reason}")
        self.skill_id = skill_id


class NotConnectedError(TransportError):
    """Operation on a skill id with no live connection."""

    def __init__(self, skill_id: str) -> None:
        super().__init__(f"MCP client not connected for skill: {skill_id}")
        self.skill_id = skill_id


# ── Agent Errors ─────────────────────────────────────────────────────

class AgentError(SkillmeshError):
    """Base for agent-related errors."""


class IllegalTransitionError(AgentError):
    """A lifecycle state machine rejected a transition."""

    def __init__(self, from_state: str, to_state: str) -> None:
        super().__init__(f"Invalid state transition: {from_state} -> {to_state}")
        self.from_state = from_state
        self.to_state = to_state


class AgentBusyError(AgentError):
    """chat() was called while another chat() is still running."""
