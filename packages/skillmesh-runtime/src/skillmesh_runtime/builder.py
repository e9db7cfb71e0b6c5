from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from skillmesh_core.logging import get_logger

if TYPE_CHECKING:
    from skillmesh_core.config import SkillmeshConfig

    from skillmesh_runtime.protocols import EventBusAdapter, SkillStore

logger = get_logger("builder")


@dataclass(slots=True)
class RuntimeBackends:
    """The event bus and skill store selected by ``[backend] tier``."""

    event_bus: EventBusAdapter
    skill_store: SkillStore

    async def close(self) -> None:
        await self.event_bus.close()
        close_store = getattr(self.skill_store, "close", None)
        if close_store is not None:
            await close_store()


class RuntimeBuilder:
    """Build :class:`RuntimeBackends` from configuration.

    Usage:
        config = SkillmeshConfig.from_toml("skillmesh.toml")
        backends = await RuntimeBuilder(config).build()

    ``memory`` keeps everything in-process, ``sqlite`` persists skills in
    SQLite, and ``nats`` adds cluster-wide messaging on top of the SQLite
    skill store.
    """

    def __init__(self, config: SkillmeshConfig) -> None:
        self._config = config

    async def build(self) -> RuntimeBackends:
        tier = self._config.backend.tier
        logger.info("Building runtime with %s backend", tier)

        if tier == "memory":
            return self._build_memory()
        elif tier == "sqlite":
            return await self._build_sqlite()
        elif tier == "nats":
            return await self._build_nats()
        else:
            raise ValueError(f"Unknown backend tier: {tier!r}")

    def _build_memory(self) -> RuntimeBackends:
        from skillmesh_runtime.backends.memory import InProcessEventBus, InProcessSkillStore

        return RuntimeBackends(
            event_bus=InProcessEventBus(),
            skill_store=InProcessSkillStore(),
        )

    async def _build_sqlite(self) -> RuntimeBackends:
        from skillmesh_runtime.backends.memory import InProcessEventBus
        from skillmesh_runtime.backends.sqlite import SQLiteSkillStore

        return RuntimeBackends(
            event_bus=InProcessEventBus(),
            skill_store=await SQLiteSkillStore.create(self._config.backend.sqlite_path),
        )

    async def _build_nats(self) -> RuntimeBackends:
        from skillmesh_runtime.backends.nats import NATSEventBus
        from skillmesh_runtime.backends.sqlite import SQLiteSkillStore

        backend = self._config.backend
        return RuntimeBackends(
            event_bus=await NATSEventBus.create(
                backend.nats_url,
                creds_file=backend.nats_creds_file,
                subject_prefix=backend.nats_stream_prefix,
            ),
            skill_store=await SQLiteSkillStore.create(backend.sqlite_path),
        )
