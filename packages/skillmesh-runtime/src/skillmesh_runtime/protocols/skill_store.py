from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from skillmesh_core.types import SkillDescriptor


@runtime_checkable
class SkillStore(Protocol):
    """Persistence for skill descriptors."""

    async def upsert_skill(self, skill: SkillDescriptor) -> None: ...
    async def get_skill(self, skill_id: str) -> SkillDescriptor | None: ...
    async def delete_skill(self, skill_id: str) -> None: ...
    async def list_skills(self) -> list[SkillDescriptor]: ...
    async def enabled_skills(self) -> list[SkillDescriptor]: ...
