from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

from skillmesh_core.logging import get_logger
from skillmesh_core.types import Message, TopicConfig

from skillmesh_runtime.backends.nats._connection import connect

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from nats.aio.client import Client as NATSClient

logger = get_logger("backend.nats.event_bus")


class NATSEventBus:
    """Core NATS pub/sub. Topics map to ``<prefix>.<topic>`` subjects.

    Messages are fire-and-forget: announcements and heartbeats are
    ephemeral, so no JetStream stream is created.
    """

    def __init__(
        self,
        nc: NATSClient,
        *,
        subject_prefix: str = "skillmesh",
    ) -> None:
        self._nc = nc
        self._subject_prefix = subject_prefix
        self._topics: dict[str, TopicConfig] = {}

    @classmethod
    async def create(
        cls,
        nats_url: str,
        *,
        creds_file: str | None = None,
        subject_prefix: str = "skillmesh",
    ) -> NATSEventBus:
        nc = await connect(nats_url, creds_file=creds_file)
        return cls(nc, subject_prefix=subject_prefix)

    def _subject(self, topic: str) -> str:
        return f"{self._subject_prefix}.{topic}"

    async def publish(self, topic: str, message: bytes, key: str | None = None) -> str:
        msg_id = uuid.uuid4().hex
        headers: dict[str, str] = {
            "Skillmesh-Msg-Id": msg_id,
            "Skillmesh-Timestamp": str(time.time()),
        }
        if key is not None:
            headers["Skillmesh-Key"] = key

        await self._nc.publish(self._subject(topic), message, headers=headers)
        return msg_id

    async def subscribe(self, topic: str) -> AsyncIterator[Message]:
        sub = await self._nc.subscribe(self._subject(topic))
        try:
            async for nats_msg in sub.messages:
                yield self._decode_message(topic, nats_msg)
        finally:
            await sub.unsubscribe()

    @staticmethod
    def _decode_message(topic: str, nats_msg: object) -> Message:
        headers = dict(getattr(nats_msg, "headers", None) or {})

        msg_id = headers.get("Skillmesh-Msg-Id", uuid.uuid4().hex)
        key = headers.get("Skillmesh-Key")
        ts_str = headers.get("Skillmesh-Timestamp")
        ts = float(ts_str) if ts_str else time.time()

        return Message(
            id=msg_id,
            topic=topic,
            payload=getattr(nats_msg, "data", b""),
            key=key,
            timestamp=ts,
            headers=headers,
        )

    async def create_topic(self, topic: str, config: TopicConfig | None = None) -> None:
        # Core NATS subjects need no provisioning; track config for conformance.
        config = config or TopicConfig()
        if topic in self._topics:
            if self._topics[topic] != config:
                raise ValueError(f"Topic {topic!r} already exists with different config")
            return
        self._topics[topic] = config

    async def delete_topic(self, topic: str) -> None:
        self._topics.pop(topic, None)

    async def close(self) -> None:
        try:
            await self._nc.drain()
        except Exception:
            logger.debug("NATS drain failed", exc_info=True)
