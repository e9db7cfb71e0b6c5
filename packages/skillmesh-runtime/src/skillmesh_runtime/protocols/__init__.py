from __future__ import annotations

from skillmesh_runtime.protocols.event_bus import EventBusAdapter
from skillmesh_runtime.protocols.skill_store import SkillStore

__all__ = [
    "EventBusAdapter",
    "SkillStore",
]
