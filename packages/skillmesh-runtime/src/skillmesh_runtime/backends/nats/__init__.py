"""NATS backend: core NATS publish/subscribe for cluster-wide messaging."""
from __future__ import annotations

from skillmesh_runtime.backends.nats.event_bus import NATSEventBus

__all__ = [
    "NATSEventBus",
]
