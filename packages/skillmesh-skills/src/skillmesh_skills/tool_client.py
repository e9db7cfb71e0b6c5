"""MCP client manager: one fastmcp ``Client`` per connected skill.

Each skill id maps to at most one live handle. Handles are created by the
``connect_*`` methods, removed by :meth:`ToolClientManager.close`,
:meth:`ToolClientManager.close_all`, or by the error callback installed on
every client when the transport fails (a subprocess exits, an HTTP stream
breaks). Once removed, calls for that skill id fail fast with
:class:`~skillmesh_core.errors.NotConnectedError` instead of touching a
half-dead session.
"""
from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import anyio
import httpx
from fastmcp import Client
from fastmcp.client.transports import (
    FastMCPTransport,
    SSETransport,
    StdioTransport,
    StreamableHttpTransport,
)
from skillmesh_core.errors import NotConnectedError, SkillConnectionError
from skillmesh_core.logging import get_logger
from skillmesh_core.types import ToolDescriptor, TransportKind

from skillmesh_skills.types import McpToolResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastmcp import FastMCP

logger = get_logger("skills.tool_client")

# Errors that mean the session itself is gone, as opposed to a tool or
# protocol error reported by a healthy server.
_TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    EOFError,
    httpx.TransportError,
    anyio.ClosedResourceError,
    anyio.BrokenResourceError,
    anyio.EndOfStream,
)


@dataclass(slots=True)
class _ToolHandle:
    """Internal bookkeeping for one connected skill."""

    skill_id: str
    kind: TransportKind
    client: Any = None
    connected_at: float = field(default_factory=time.time)


class ToolClientManager:
    """Manages MCP connections to tool servers, keyed by skill id.

    Transports are selected by an explicit :class:`TransportKind` at
    connect time:

    * ``STDIO`` -- spawn a child process, speak MCP over stdin/stdout
    * ``HTTP`` -- legacy SSE transport
    * ``STREAMABLE_HTTP`` -- modern streamable HTTP transport (default)
    * ``IN_PROCESS`` -- a ``FastMCP`` server object in the same process

    ``client_factory`` builds the client for a transport; it defaults to
    :class:`fastmcp.Client` and is called as
    ``client_factory(transport, message_handler=...)``.
    """

    def __init__(
        self,
        client_factory: Callable[..., Any] | None = None,
    ) -> None:
        self._client_factory = client_factory or Client
        self._handles: dict[str, _ToolHandle] = {}

    # ── Connect ─────────────────────────────────────────────────────

    async def connect_stdio(
        self,
        skill_id: str,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        """Spawn *command* and connect to it over stdio.

        *env* is layered over the current process environment.
        """
        logger.info(
            "Connecting MCP client for %s via stdio: %s %s",
            skill_id, command, " ".join(args or []),
        )
        transport = StdioTransport(
            command=command,
            args=list(args or []),
            env={**os.environ, **env} if env else None,
        )
        await self._connect(skill_id, TransportKind.STDIO, transport)

    async def connect_http(
        self,
        skill_id: str,
        url: str,
        transport: TransportKind = TransportKind.STREAMABLE_HTTP,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Connect to an MCP server over HTTP.

        ``TransportKind.HTTP`` selects the legacy SSE transport,
        ``TransportKind.STREAMABLE_HTTP`` the modern one.
        """
        if transport is TransportKind.HTTP:
            wire = SSETransport(url, headers=headers)
        elif transport is TransportKind.STREAMABLE_HTTP:
            wire = StreamableHttpTransport(url, headers=headers)
        else:
            msg = f"Not an HTTP transport: {transport.value}"
            raise ValueError(msg)

        logger.info(
            "Connecting MCP client for %s via %s: %s",
            skill_id, transport.value, url,
        )
        await self._connect(skill_id, transport, wire)

    async def connect_in_process(self, skill_id: str, server: FastMCP) -> None:
        """Connect to a ``FastMCP`` server living in this process."""
        logger.info("Connecting MCP client for %s in-process", skill_id)
        await self._connect(
            skill_id, TransportKind.IN_PROCESS, FastMCPTransport(server)
        )

    async def _connect(
        self,
        skill_id: str,
        kind: TransportKind,
        transport: Any,
    ) -> None:
        if skill_id in self._handles:
            logger.warning(
                "Skill %s already connected, closing existing connection",
                skill_id,
            )
            await self.close(skill_id)

        handle = _ToolHandle(skill_id=skill_id, kind=kind)
        handle.client = self._client_factory(
            transport, message_handler=self._error_callback(handle)
        )

        try:
            await handle.client.__aenter__()
        except Exception as exc:
            logger.error(
                "Failed to connect MCP client for %s via %s: %s",
                skill_id, kind.value, exc,
            )
            raise SkillConnectionError(
                skill_id, f"{type(exc).__name__}: {exc}"
            ) from exc

        self._handles[skill_id] = handle
        logger.info("MCP client connected for %s via %s", skill_id, kind.value)

    # ── Tool operations ─────────────────────────────────────────────

    async def list_tools(self, skill_id: str) -> list[ToolDescriptor]:
        """List the tools served by *skill_id*, tagged with the skill id."""
        handle = self._require(skill_id)
        try:
            tools = await handle.client.list_tools()
        except Exception as exc:
            self._check_transport(handle, exc)
            raise

        return [
            ToolDescriptor(
                name=tool.name,
                description=tool.description or "",
                input_schema=dict(tool.inputSchema or {"type": "object"}),
                owner_id=skill_id,
            )
            for tool in tools
        ]

    async def call_tool(
        self,
        skill_id: str,
        name: str,
        arguments: dict[str, Any],
    ) -> McpToolResult:
        """Call tool *name* on *skill_id*.

        A tool-level failure comes back as ``is_error=True``; only
        transport and protocol failures raise.
        """
        handle = self._require(skill_id)
        logger.info("Calling MCP tool %s on %s", name, skill_id)

        try:
            result = await handle.client.call_tool_mcp(name, arguments)
        except Exception as exc:
            logger.error("MCP tool call %s on %s failed: %s", name, skill_id, exc)
            self._check_transport(handle, exc)
            raise

        content: list[dict[str, Any]] = []
        for block in result.content or []:
            entry: dict[str, Any] = {"type": getattr(block, "type", "text")}
            text = getattr(block, "text", None)
            if text is not None:
                entry["text"] = text
            content.append(entry)

        return McpToolResult(content=content, is_error=bool(result.isError))

    def is_connected(self, skill_id: str) -> bool:
        """True while *skill_id* has a live handle."""
        handle = self._handles.get(skill_id)
        if handle is None:
            return False
        if not handle.client.is_connected():
            self._drop(handle, "session no longer connected")
            return False
        return True

    def connected_skills(self) -> list[str]:
        return list(self._handles)

    # ── Close ───────────────────────────────────────────────────────

    async def close(self, skill_id: str) -> None:
        """Close one skill's connection. Unknown ids are ignored.

        The entry is removed even when the underlying close fails.
        """
        handle = self._handles.pop(skill_id, None)
        if handle is None:
            return

        try:
            await handle.client.close()
            logger.info("MCP client closed for %s", skill_id)
        except Exception:
            logger.error("Error closing MCP client for %s", skill_id, exc_info=True)

    async def close_all(self) -> None:
        """Close every connection; one failure does not stop the rest."""
        skill_ids = list(self._handles)
        for skill_id in skill_ids:
            await self.close(skill_id)
        logger.info("All MCP clients closed (%d)", len(skill_ids))

    # ── Internals ───────────────────────────────────────────────────

    def _require(self, skill_id: str) -> _ToolHandle:
        handle = self._handles.get(skill_id)
        if handle is None:
            raise NotConnectedError(skill_id)
        return handle

    def _error_callback(
        self, handle: _ToolHandle
    ) -> Callable[[Any], Awaitable[None]]:
        """Build the message handler that drops *handle* on session errors."""

        async def on_message(message: Any) -> None:
            if isinstance(message, Exception):
                self._drop(handle, f"{type(message).__name__}: {message}")

        return on_message

    def _check_transport(self, handle: _ToolHandle, exc: Exception) -> None:
        if isinstance(exc, _TRANSPORT_ERRORS) or not handle.client.is_connected():
            self._drop(handle, f"{type(exc).__name__}: {exc}")

    def _drop(self, handle: _ToolHandle, reason: str) -> None:
        # Identity check: a stale callback must not remove a newer handle.
        if self._handles.get(handle.skill_id) is handle:
            del self._handles[handle.skill_id]
            logger.error(
                "MCP client error for %s, cleaning up connection: %s",
                handle.skill_id, reason,
            )
