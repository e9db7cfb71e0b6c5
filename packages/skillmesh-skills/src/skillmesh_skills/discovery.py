"""Extension discovery: self-registering MCP services announced over the bus.

An extension pod publishes an :class:`ExtensionAnnounce` on
``extensions.announce`` and then heartbeats on
``extensions.<id>.heartbeat``. The monitor stores it as a service-tier,
extension-owned skill ``ext-<id>``, connects it, and disconnects it again
once heartbeats stop for longer than the configured timeout.
"""
from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from skillmesh_core.config import DiscoveryConfig
from skillmesh_core.logging import get_logger
from skillmesh_core.types import SkillDescriptor, SkillOwner, SkillTier, TransportKind

from skillmesh_skills.types import ExtensionAnnounce

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from skillmesh_runtime.protocols.event_bus import EventBusAdapter
    from skillmesh_runtime.protocols.skill_store import SkillStore

    from skillmesh_skills.registry import SkillRegistry

logger = get_logger("skills.discovery")

ANNOUNCE_TOPIC = "extensions.announce"


def heartbeat_topic(extension_id: str) -> str:
    return f"extensions.{extension_id}.heartbeat"


def extension_skill_id(extension_id: str) -> str:
    return f"ext-{extension_id}"


@dataclass(slots=True)
class TrackedExtension:
    announce: ExtensionAnnounce
    last_seen: float
    online: bool = True
    connected: bool = False


class ExtensionMonitor:
    """Tracks announced extensions and keeps their MCP connections current.

    ``on_change`` is awaited whenever the set of connected extensions
    changes, so the owner can rebuild its tool catalog.
    """

    def __init__(
        self,
        bus: EventBusAdapter,
        registry: SkillRegistry,
        store: SkillStore,
        config: DiscoveryConfig | None = None,
        *,
        on_change: Callable[[], Awaitable[None]] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._bus = bus
        self._registry = registry
        self._store = store
        self._config = config or DiscoveryConfig()
        self._on_change = on_change
        self._clock = clock
        self._extensions: dict[str, TrackedExtension] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}

    # ── Public API ──────────────────────────────────────────────────

    async def start(self) -> None:
        """Reconnect known extensions, then listen for announcements."""
        await self._reconnect_known()
        self._spawn("announce", self._listen_announce())
        self._spawn("monitor", self._monitor_loop())
        logger.info("Extension monitor started")

    async def stop(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        for task in self._tasks.values():
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
        self._extensions.clear()
        logger.info("Extension monitor stopped")

    def extensions(self) -> list[dict[str, Any]]:
        return [
            {
                "id": ext.announce.id,
                "name": ext.announce.name,
                "version": ext.announce.version,
                "description": ext.announce.description,
                "online": ext.online,
                "connected": ext.connected,
                "skill_id": extension_skill_id(ext.announce.id),
            }
            for ext in self._extensions.values()
        ]

    async def handle_announce(self, announce: ExtensionAnnounce) -> None:
        """Store, connect and start tracking an announced extension."""
        skill = SkillDescriptor(
            id=extension_skill_id(announce.id),
            name=announce.name,
            tier=SkillTier.SERVICE,
            version=announce.version,
            description=announce.description,
            transport=announce.transport,
            http_url=announce.mcp_url,
            owner=SkillOwner.EXTENSION,
            tags=list(announce.tags),
        )
        await self._store.upsert_skill(skill)

        self._extensions[announce.id] = TrackedExtension(
            announce=announce, last_seen=self._clock()
        )
        await self._connect_with_retry(announce.id, skill)
        self._subscribe_heartbeat(announce.id)
        logger.info(
            "Extension %s registered at %s (tools: %s)",
            announce.id, announce.mcp_url, ", ".join(announce.tools),
        )

    async def handle_heartbeat(self, extension_id: str) -> None:
        """Refresh liveness; reconnect if the extension was lost."""
        ext = self._extensions.get(extension_id)
        if ext is None:
            return
        ext.last_seen = self._clock()

        if ext.online and ext.connected:
            return

        skill = await self._store.get_skill(extension_skill_id(extension_id))
        if skill is None:
            return

        if not ext.online:
            ext.online = True
            logger.info("Extension %s back online", extension_id)
            await self._connect_with_retry(extension_id, skill)
        else:
            await self._try_connect(extension_id, skill)

    async def check_offline(self) -> None:
        """Disconnect extensions whose heartbeat is older than the timeout."""
        now = self._clock()
        timeout = self._config.heartbeat_timeout_seconds

        for extension_id, ext in list(self._extensions.items()):
            if not ext.online or now - ext.last_seen <= timeout:
                continue
            ext.online = False
            ext.connected = False
            try:
                await self._registry.disconnect_skill(extension_skill_id(extension_id))
            except Exception:
                logger.exception("Failed to disconnect offline extension %s", extension_id)
            logger.warning("Extension %s marked offline (missed heartbeats)", extension_id)
            await self._notify()

    # ── Internals ───────────────────────────────────────────────────

    async def _reconnect_known(self) -> None:
        known = [
            s for s in await self._store.list_skills()
            if s.owner is SkillOwner.EXTENSION and s.enabled
        ]
        if not known:
            return
        logger.info("Reconnecting %d known extensions", len(known))

        for skill in known:
            extension_id = skill.id.removeprefix("ext-")
            announce = ExtensionAnnounce(
                id=extension_id,
                name=skill.name,
                mcp_url=skill.http_url or "",
                version=skill.version,
                description=skill.description,
                transport=skill.transport or TransportKind.STREAMABLE_HTTP,
                tags=list(skill.tags),
            )
            self._extensions[extension_id] = TrackedExtension(
                announce=announce, last_seen=self._clock()
            )
            await self._connect_with_retry(extension_id, skill)
            self._subscribe_heartbeat(extension_id)

    async def _connect_with_retry(self, extension_id: str, skill: SkillDescriptor) -> None:
        attempts = self._config.max_connect_retries
        for attempt in range(1, attempts + 1):
            if await self._try_connect(extension_id, skill, attempt=attempt):
                return
            if attempt < attempts:
                await asyncio.sleep(self._config.connect_retry_delay_seconds)
        logger.error(
            "Failed to connect extension %s after %d attempts "
            "(will retry on next heartbeat)",
            extension_id, attempts,
        )

    async def _try_connect(
        self, extension_id: str, skill: SkillDescriptor, *, attempt: int = 1
    ) -> bool:
        try:
            await self._registry.connect_and_register(skill)
        except Exception as exc:
            logger.warning(
                "Connecting extension %s failed (attempt %d): %s",
                extension_id, attempt, exc,
            )
            return False

        ext = self._extensions.get(extension_id)
        if ext is not None:
            ext.connected = True
        logger.info("Extension %s MCP connected (attempt %d)", extension_id, attempt)
        await self._notify()
        return True

    async def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            await self._on_change()
        except Exception:
            logger.exception("Extension change callback failed")

    def _subscribe_heartbeat(self, extension_id: str) -> None:
        key = f"heartbeat:{extension_id}"
        if key not in self._tasks:
            self._spawn(key, self._listen_heartbeat(extension_id))

    def _spawn(self, key: str, coro: Awaitable[None]) -> None:
        self._tasks[key] = asyncio.ensure_future(coro)

    async def _listen_announce(self) -> None:
        async for msg in self._bus.subscribe(ANNOUNCE_TOPIC):
            try:
                await self.handle_announce(ExtensionAnnounce.decode(msg.payload))
            except Exception:
                logger.exception("Failed to process extension announcement")

    async def _listen_heartbeat(self, extension_id: str) -> None:
        async for _msg in self._bus.subscribe(heartbeat_topic(extension_id)):
            try:
                await self.handle_heartbeat(extension_id)
            except Exception:
                logger.exception("Failed to process heartbeat for %s", extension_id)

    async def _monitor_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.monitor_interval_seconds)
            await self.check_offline()
