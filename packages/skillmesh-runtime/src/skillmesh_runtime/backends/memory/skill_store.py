from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skillmesh_core.types import SkillDescriptor


class InProcessSkillStore:
    """In-memory skill descriptor store."""

    def __init__(self) -> None:
        self._skills: dict[str, SkillDescriptor] = {}

    async def upsert_skill(self, skill: SkillDescriptor) -> None:
        self._skills[skill.id] = skill

    async def get_skill(self, skill_id: str) -> SkillDescriptor | None:
        return self._skills.get(skill_id)

    async def delete_skill(self, skill_id: str) -> None:
        self._skills.pop(skill_id, None)

    async def list_skills(self) -> list[SkillDescriptor]:
        return list(self._skills.values())

    async def enabled_skills(self) -> list[SkillDescriptor]:
        return [s for s in self._skills.values() if s.enabled]
