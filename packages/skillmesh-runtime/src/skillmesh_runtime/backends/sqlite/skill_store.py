from __future__ import annotations

import json
from typing import TYPE_CHECKING

from skillmesh_core.types import SkillDescriptor

from skillmesh_runtime.backends.sqlite._db import get_connection

if TYPE_CHECKING:
    import aiosqlite

_CREATE_SKILLS = """
CREATE TABLE IF NOT EXISTS skills (
    id TEXT PRIMARY KEY,
    enabled INTEGER NOT NULL DEFAULT 1,
    body TEXT NOT NULL
);
"""


def _from_row(row: aiosqlite.Row) -> SkillDescriptor:
    return SkillDescriptor.from_dict(json.loads(row["body"]))


class SQLiteSkillStore:
    """SQLite-backed skill descriptor store.

    Descriptors are stored as JSON documents; only ``id`` and ``enabled``
    are broken out as columns for lookup.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    @classmethod
    async def create(cls, db_path: str) -> SQLiteSkillStore:
        conn = await get_connection(db_path)
        await conn.executescript(_CREATE_SKILLS)
        await conn.commit()
        return cls(conn)

    async def upsert_skill(self, skill: SkillDescriptor) -> None:
        await self._conn.execute(
            """INSERT INTO skills (id, enabled, body) VALUES (?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   enabled = excluded.enabled,
                   body = excluded.body""",
            (skill.id, int(skill.enabled), json.dumps(skill.to_dict())),
        )
        await self._conn.commit()

    async def get_skill(self, skill_id: str) -> SkillDescriptor | None:
        async with self._conn.execute(
            "SELECT body FROM skills WHERE id = ?", (skill_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if not row:
                return None
            return _from_row(row)

    async def delete_skill(self, skill_id: str) -> None:
        await self._conn.execute("DELETE FROM skills WHERE id = ?", (skill_id,))
        await self._conn.commit()

    async def list_skills(self) -> list[SkillDescriptor]:
        async with self._conn.execute("SELECT body FROM skills ORDER BY id") as cursor:
            return [_from_row(row) async for row in cursor]

    async def enabled_skills(self) -> list[SkillDescriptor]:
        async with self._conn.execute(
            "SELECT body FROM skills WHERE enabled = 1 ORDER BY id"
        ) as cursor:
            return [_from_row(row) async for row in cursor]

    async def close(self) -> None:
        await self._conn.close()
