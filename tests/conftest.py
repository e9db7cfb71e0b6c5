from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest
import pytest_asyncio
from fastmcp import FastMCP

# ── Fake MCP client ──────────────────────────────────────────────────


class FakeClient:
    """Stands in for ``fastmcp.Client``; records every lifecycle call."""

    def __init__(
        self,
        transport: Any,
        message_handler: Any = None,
        *,
        tools: list[str] | None = None,
        fail_connect: Exception | None = None,
    ) -> None:
        self.transport = transport
        self.message_handler = message_handler
        self.tools = list(tools if tools is not None else ["echo"])
        self.fail_connect = fail_connect
        self.call_error: Exception | None = None
        self.fail_close: Exception | None = None
        self.tool_is_error = False
        self.connected = False
        self.enter_count = 0
        self.close_count = 0
        self.list_count = 0
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def __aenter__(self) -> FakeClient:
        self.enter_count += 1
        if self.fail_connect is not None:
            raise self.fail_connect
        self.connected = True
        return self

    async def close(self) -> None:
        self.close_count += 1
        self.connected = False
        if self.fail_close is not None:
            raise self.fail_close

    def is_connected(self) -> bool:
        return self.connected

    async def list_tools(self) -> list[SimpleNamespace]:
        self.list_count += 1
        return [
            SimpleNamespace(
                name=name,
                description=f"{name} tool",
                inputSchema={"type": "object", "properties": {}},
            )
            for name in self.tools
        ]

    async def call_tool_mcp(self, name: str, arguments: dict[str, Any]) -> SimpleNamespace:
        self.calls.append((name, arguments))
        if self.call_error is not None:
            raise self.call_error
        return SimpleNamespace(
            content=[SimpleNamespace(type="text", text=f"{name} ok")],
            isError=self.tool_is_error,
        )


class FakeClientFactory:
    """Builds :class:`FakeClient` objects keyed by transport target.

    ``tools`` maps a URL or stdio command to the tool names that endpoint
    serves; ``failing`` holds targets whose connect raises.
    """

    def __init__(self) -> None:
        self.tools: dict[str, list[str]] = {}
        self.failing: dict[str, Exception] = {}
        self.created: list[FakeClient] = []

    def __call__(self, transport: Any, message_handler: Any = None) -> FakeClient:
        target = getattr(transport, "url", None) or getattr(transport, "command", None)
        client = FakeClient(
            transport,
            message_handler,
            tools=self.tools.get(str(target)),
            fail_connect=self.failing.get(str(target)),
        )
        self.created.append(client)
        return client

    def latest(self) -> FakeClient:
        return self.created[-1]


@pytest.fixture
def client_factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest_asyncio.fixture
async def tool_clients(client_factory):
    from skillmesh_skills.tool_client import ToolClientManager

    manager = ToolClientManager(client_factory=client_factory)
    yield manager
    await manager.close_all()


# ── In-process MCP server ────────────────────────────────────────────


@pytest.fixture
def math_server() -> FastMCP:
    server = FastMCP("math")

    @server.tool()
    def add(a: int, b: int) -> int:
        """Add two integers."""
        return a + b

    @server.tool()
    def explode() -> str:
        """Always fails."""
        raise ValueError("kaboom")

    return server


# ── Backends ─────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def memory_event_bus():
    from skillmesh_runtime.backends.memory import InProcessEventBus

    bus = InProcessEventBus()
    yield bus
    await bus.close()


@pytest_asyncio.fixture
async def memory_skill_store():
    from skillmesh_runtime.backends.memory import InProcessSkillStore

    return InProcessSkillStore()


@pytest_asyncio.fixture
async def sqlite_skill_store(tmp_path):
    from skillmesh_runtime.backends.sqlite import SQLiteSkillStore

    store = await SQLiteSkillStore.create(str(tmp_path / "skills.db"))
    yield store
    await store.close()


# ── Scripted model ───────────────────────────────────────────────────


class ScriptedModel:
    """ModelClient returning queued responses; repeats the last one forever."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def chat(self, *, role, system, tools, messages):
        self.calls.append({
            "role": role,
            "system": system,
            "tools": tools,
            "messages": list(messages),
        })
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


@pytest.fixture
def scripted_model():
    return ScriptedModel
