"""In-process backend: zero dependencies, in-memory only."""
from __future__ import annotations

from skillmesh_runtime.backends.memory.event_bus import InProcessEventBus
from skillmesh_runtime.backends.memory.skill_store import InProcessSkillStore

__all__ = [
    "InProcessEventBus",
    "InProcessSkillStore",
]
