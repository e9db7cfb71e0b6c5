"""Conformance tests for SkillStore backends and the in-process event bus."""
from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest
from skillmesh_core.types import (
    SkillDescriptor,
    SkillOwner,
    SkillTier,
    TopicConfig,
    TransportKind,
)
from skillmesh_runtime.protocols import EventBusAdapter, SkillStore


@pytest.fixture(params=["memory", "sqlite"])
def skill_store(request):
    backends = {
        "memory": "memory_skill_store",
        "sqlite": "sqlite_skill_store",
    }
    return request.getfixturevalue(backends[request.param])


def _skill(skill_id: str, **kwargs) -> SkillDescriptor:
    return SkillDescriptor(
        id=skill_id,
        name=skill_id.title(),
        tier=SkillTier.STDIO,
        transport=TransportKind.STDIO,
        stdio_command="npx",
        stdio_args=["-y", f"@mcp/{skill_id}"],
        config={"env": {"TOKEN": "x"}},
        tags=["ops"],
        **kwargs,
    )


class TestSkillStoreConformance:
    async def test_satisfies_protocol(self, skill_store):
        assert isinstance(skill_store, SkillStore)

    async def test_upsert_and_get(self, skill_store):
        skill = _skill("github", owner=SkillOwner.AGENT)
        await skill_store.upsert_skill(skill)

        assert await skill_store.get_skill("github") == skill

    async def test_get_missing(self, skill_store):
        assert await skill_store.get_skill("nope") is None

    async def test_upsert_replaces(self, skill_store):
        skill = _skill("github")
        await skill_store.upsert_skill(skill)
        await skill_store.upsert_skill(replace(skill, version="2.0.0"))

        stored = await skill_store.get_skill("github")
        assert stored is not None
        assert stored.version == "2.0.0"
        assert len(await skill_store.list_skills()) == 1

    async def test_enabled_filter(self, skill_store):
        await skill_store.upsert_skill(_skill("a"))
        await skill_store.upsert_skill(_skill("b", enabled=False))

        assert [s.id for s in await skill_store.enabled_skills()] == ["a"]
        assert {s.id for s in await skill_store.list_skills()} == {"a", "b"}

    async def test_delete(self, skill_store):
        await skill_store.upsert_skill(_skill("a"))
        await skill_store.delete_skill("a")
        await skill_store.delete_skill("a")

        assert await skill_store.list_skills() == []


class TestInProcessEventBus:
    async def test_satisfies_protocol(self, memory_event_bus):
        assert isinstance(memory_event_bus, EventBusAdapter)

    async def test_subscribe_receives_published_messages(self, memory_event_bus):
        received = []

        async def consume():
            async for msg in memory_event_bus.subscribe("ext.announce"):
                received.append(msg)
                if len(received) >= 2:
                    break

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.05)

        await memory_event_bus.publish("ext.announce", b"one", key="k")
        await memory_event_bus.publish("ext.announce", b"two")

        await asyncio.wait_for(task, timeout=5.0)
        assert [m.payload for m in received] == [b"one", b"two"]
        assert received[0].key == "k"
        assert memory_event_bus.subscriber_count("ext.announce") == 0

    async def test_publish_without_subscribers(self, memory_event_bus):
        msg_id = await memory_event_bus.publish("nobody", b"x")
        assert msg_id

    async def test_create_topic_conflict(self, memory_event_bus):
        await memory_event_bus.create_topic("t", TopicConfig(retention_seconds=10))
        await memory_event_bus.create_topic("t", TopicConfig(retention_seconds=10))
        with pytest.raises(ValueError, match="already exists"):
            await memory_event_bus.create_topic("t", TopicConfig(retention_seconds=20))


class TestRuntimeBuilder:
    async def test_memory_tier(self):
        from skillmesh_core.config import BackendConfig, SkillmeshConfig
        from skillmesh_runtime.backends.memory import InProcessEventBus, InProcessSkillStore
        from skillmesh_runtime.builder import RuntimeBuilder

        backends = await RuntimeBuilder(
            SkillmeshConfig(backend=BackendConfig(tier="memory"))
        ).build()

        assert isinstance(backends.event_bus, InProcessEventBus)
        assert isinstance(backends.skill_store, InProcessSkillStore)
        await backends.close()

    async def test_sqlite_tier(self, tmp_path):
        from skillmesh_core.config import BackendConfig, SkillmeshConfig
        from skillmesh_runtime.backends.sqlite import SQLiteSkillStore
        from skillmesh_runtime.builder import RuntimeBuilder

        config = SkillmeshConfig(
            backend=BackendConfig(tier="sqlite", sqlite_path=str(tmp_path / "db" / "s.db"))
        )
        backends = await RuntimeBuilder(config).build()

        assert isinstance(backends.skill_store, SQLiteSkillStore)
        await backends.skill_store.upsert_skill(_skill("a"))
        assert [s.id for s in await backends.skill_store.list_skills()] == ["a"]
        await backends.close()

    async def test_unknown_tier(self):
        from skillmesh_core.config import BackendConfig, SkillmeshConfig
        from skillmesh_runtime.builder import RuntimeBuilder

        with pytest.raises(ValueError, match="Unknown backend tier"):
            await RuntimeBuilder(SkillmeshConfig(backend=BackendConfig(tier="redis"))).build()


class _FakeNATS:
    def __init__(self) -> None:
        self.published: list[tuple[str, bytes, dict]] = []
        self.drained = False

    async def publish(self, subject, payload, headers=None):
        self.published.append((subject, payload, headers))

    async def drain(self):
        self.drained = True


class TestNATSEventBus:
    async def test_publish_prefixes_subject_and_sets_headers(self):
        from skillmesh_runtime.backends.nats import NATSEventBus

        nc = _FakeNATS()
        bus = NATSEventBus(nc, subject_prefix="mesh")

        msg_id = await bus.publish("extensions.announce", b"{}", key="browser")

        subject, payload, headers = nc.published[0]
        assert subject == "mesh.extensions.announce"
        assert payload == b"{}"
        assert headers["Skillmesh-Msg-Id"] == msg_id
        assert headers["Skillmesh-Key"] == "browser"

        await bus.close()
        assert nc.drained

    def test_decode_message_reads_headers(self):
        from types import SimpleNamespace

        from skillmesh_runtime.backends.nats import NATSEventBus

        raw = SimpleNamespace(
            data=b"hb",
            headers={"Skillmesh-Msg-Id": "m1", "Skillmesh-Timestamp": "12.5"},
        )
        msg = NATSEventBus._decode_message("extensions.x.heartbeat", raw)

        assert msg.id == "m1"
        assert msg.timestamp == 12.5
        assert msg.payload == b"hb"
