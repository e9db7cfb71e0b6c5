"""SQLite backend: single-node persistence via aiosqlite."""
from __future__ import annotations

from skillmesh_runtime.backends.sqlite.skill_store import SQLiteSkillStore

__all__ = [
    "SQLiteSkillStore",
]
