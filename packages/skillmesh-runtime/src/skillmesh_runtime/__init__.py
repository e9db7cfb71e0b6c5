"""skillmesh runtime: event bus and skill store protocols with pluggable backends."""
from __future__ import annotations

from skillmesh_runtime.builder import RuntimeBackends, RuntimeBuilder
from skillmesh_runtime.protocols import EventBusAdapter, SkillStore

__all__ = [
    "EventBusAdapter",
    "RuntimeBackends",
    "RuntimeBuilder",
    "SkillStore",
]
