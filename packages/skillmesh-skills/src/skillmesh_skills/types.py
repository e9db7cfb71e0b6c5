"""Skill-side value types shared by the registries and discovery."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from skillmesh_core.types import TransportKind


@dataclass(frozen=True, slots=True)
class McpToolResult:
    """Raw result of an MCP ``tools/call``.

    ``content`` keeps the MCP block shape, ``[{"type": ..., "text": ...}]``.
    """

    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False

    def text(self) -> str:
        """Join the text blocks, or ``"(no output)"`` when there are none."""
        texts = [
            block["text"]
            for block in self.content
            if block.get("type") == "text" and block.get("text")
        ]
        return "\n".join(texts) or "(no output)"


@dataclass(frozen=True, slots=True)
class PluginConfig:
    """One entry of the legacy PLUGINS.json file."""

    package: str
    enabled: bool = True
    config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TriggerEvent:
    """An external event routed to a legacy plugin."""

    source: str
    event: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: str = ""


@dataclass(frozen=True, slots=True)
class ExtensionAnnounce:
    """Self-registration message published by an extension pod."""

    id: str
    name: str
    mcp_url: str
    version: str = "0.1.0"
    description: str = ""
    transport: TransportKind = TransportKind.STREAMABLE_HTTP
    tools: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    @classmethod
    def decode(cls, payload: bytes) -> ExtensionAnnounce:
        raw = json.loads(payload)
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or raw["id"]),
            mcp_url=str(raw["mcpUrl"] if "mcpUrl" in raw else raw["mcp_url"]),
            version=str(raw.get("version", "0.1.0")),
            description=str(raw.get("description", "")),
            transport=TransportKind(raw.get("transport") or "streamable-http"),
            tools=[str(t) for t in raw.get("tools") or []],
            tags=[str(t) for t in raw.get("tags") or []],
        )

    def encode(self) -> bytes:
        return json.dumps({
            "id": self.id,
            "name": self.name,
            "mcpUrl": self.mcp_url,
            "version": self.version,
            "description": self.description,
            "transport": self.transport.value,
            "tools": list(self.tools),
            "tags": list(self.tags),
        }).encode()
