from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any

# ── Event Bus Types ──────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class Message:
    """A message received from the event bus."""
    id: str
    topic: str
    payload: bytes
    key: str | None = None
    timestamp: float = field(default_factory=time.time)
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TopicConfig:
    """Configuration for creating a topic."""
    retention_seconds: int = 86400
    max_message_bytes: int = 1_048_576


# ── Tool Types ───────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """A callable tool as exposed to the model.

    ``owner_id`` is the id of the skill or the name of the legacy plugin
    that serves the tool. It is never sent to the model.
    """
    name: str
    description: str
    input_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object"}
    )
    owner_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the model-facing ``{name, description, input_schema}`` shape."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of a tool call, folded to text for the model.

    ``state_transition`` carries a lifecycle transition intent raised by
    the tool; the agent loop stops after the current turn when it is set.
    """
    result: str
    is_error: bool = False
    state_transition: str | None = None

    @classmethod
    def no_provider(cls, tool_name: str) -> ToolResult:
        return cls(
            result=f"No skill or plugin registered for tool: {tool_name}",
            is_error=True,
        )


# ── Skill Types ──────────────────────────────────────────────────────

class SkillTier(enum.Enum):
    """How a skill is reached."""

    INSTRUCTION = "instruction"  # markdown injected into the system prompt
    STDIO = "stdio"  # local MCP server spawned as a child process
    SIDECAR = "sidecar"  # MCP server in a sidecar container, over HTTP
    SERVICE = "service"  # standalone MCP service, over HTTP


class TransportKind(enum.Enum):
    """Wire transport used to talk to an MCP server."""

    STDIO = "stdio"
    HTTP = "http"  # legacy SSE
    STREAMABLE_HTTP = "streamable-http"
    IN_PROCESS = "in-process"


class SkillOwner(enum.Enum):
    SYSTEM = "system"
    AGENT = "agent"
    EXTENSION = "extension"


@dataclass(frozen=True, slots=True)
class SkillDescriptor:
    """A configured tool provider.

    Tier-specific connection parameters: ``stdio_command``/``stdio_args``
    for stdio skills, ``http_url`` for sidecar and service skills, and
    ``instruction_content`` or ``instruction_path`` for instruction skills.
    """
    id: str
    name: str
    tier: SkillTier
    version: str = "0.1.0"
    description: str = ""
    transport: TransportKind | None = None
    enabled: bool = True
    config: dict[str, Any] = field(default_factory=dict)
    stdio_command: str | None = None
    stdio_args: list[str] = field(default_factory=list)
    http_url: str | None = None
    instruction_path: str | None = None
    instruction_content: str | None = None
    owner: SkillOwner = SkillOwner.SYSTEM
    tags: list[str] = field(default_factory=list)

    @property
    def connects(self) -> bool:
        """True for tiers that hold a live MCP connection."""
        return self.tier is not SkillTier.INSTRUCTION

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "tier": self.tier.value,
            "version": self.version,
            "description": self.description,
            "transport": self.transport.value if self.transport else None,
            "enabled": self.enabled,
            "config": dict(self.config),
            "stdio_command": self.stdio_command,
            "stdio_args": list(self.stdio_args),
            "http_url": self.http_url,
            "instruction_path": self.instruction_path,
            "instruction_content": self.instruction_content,
            "owner": self.owner.value,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SkillDescriptor:
        transport = raw.get("transport")
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or raw["id"]),
            tier=SkillTier(raw["tier"]),
            version=str(raw.get("version", "0.1.0")),
            description=str(raw.get("description", "")),
            transport=TransportKind(transport) if transport else None,
            enabled=bool(raw.get("enabled", True)),
            config=dict(raw.get("config") or {}),
            stdio_command=raw.get("stdio_command"),
            stdio_args=[str(a) for a in raw.get("stdio_args") or []],
            http_url=raw.get("http_url"),
            instruction_path=raw.get("instruction_path"),
            instruction_content=raw.get("instruction_content"),
            owner=SkillOwner(raw.get("owner") or "system"),
            tags=[str(t) for t in raw.get("tags") or []],
        )
