"""Skill descriptor discovery: SKILL.md directories and YAML descriptor files."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from skillmesh_core.errors import SkillValidationError
from skillmesh_core.logging import get_logger
from skillmesh_core.types import SkillDescriptor, SkillOwner

from skillmesh_skills.parser import parse_skill_md

if TYPE_CHECKING:
    from skillmesh_runtime.protocols.skill_store import SkillStore

logger = get_logger("skills.loader")

DEFAULT_DISCOVERY_PATHS: list[Path] = [
    Path("./skills"),
    Path.home() / ".skillmesh" / "skills",
]

_SKILL_FILENAME = "SKILL.md"


class SkillLoader:
    """Discovers instruction skills from directories holding a ``SKILL.md``."""

    def __init__(self, extra_paths: list[Path] | None = None) -> None:
        self._extra_paths: list[Path] = extra_paths or []

    @property
    def search_paths(self) -> list[Path]:
        return DEFAULT_DISCOVERY_PATHS + self._extra_paths

    def discover(self, paths: list[Path] | None = None) -> list[SkillDescriptor]:
        """Scan *paths* (recursively) and return parsed descriptors.

        Skills that fail to parse are logged and skipped; the first skill
        seen for an id wins.
        """
        scan_paths = paths if paths is not None else self.search_paths
        skills: list[SkillDescriptor] = []
        seen_ids: set[str] = set()

        for base in scan_paths:
            resolved = base.expanduser().resolve()
            if not resolved.is_dir():
                logger.debug("Skipping non-existent path: %s", resolved)
                continue

            for skill_file in sorted(resolved.rglob(_SKILL_FILENAME)):
                try:
                    skill = parse_skill_md(skill_file)
                except (SkillValidationError, OSError):
                    logger.warning(
                        "Failed to load skill from %s", skill_file, exc_info=True
                    )
                    continue

                if skill.id in seen_ids:
                    logger.warning(
                        "Duplicate skill id '%s' at %s (skipping)", skill.id, skill_file
                    )
                    continue

                seen_ids.add(skill.id)
                skills.append(skill)

        logger.info("Discovered %d skill(s)", len(skills))
        return skills


def load_descriptor_file(path: Path | str) -> list[SkillDescriptor]:
    """Read skill descriptors from a YAML file.

    The file holds either a list of descriptor mappings or a mapping with
    a ``skills`` list.

    Raises:
        SkillValidationError: If the YAML or a descriptor is malformed.
    """
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {path}: {exc}"
        raise SkillValidationError(msg) from exc

    if isinstance(raw, dict):
        raw = raw.get("skills", [])
    if not isinstance(raw, list):
        msg = f"Descriptor file must hold a list of skills: {path}"
        raise SkillValidationError(msg)

    descriptors: list[SkillDescriptor] = []
    for entry in raw:
        try:
            descriptors.append(SkillDescriptor.from_dict(entry))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            msg = f"Invalid skill descriptor in {path}: {entry!r} ({exc})"
            raise SkillValidationError(msg) from exc
    return descriptors


async def sync_store(
    store: SkillStore,
    descriptors: list[SkillDescriptor],
) -> None:
    """Upsert *descriptors* into *store*, keeping skills owned by others.

    Stale system-owned skills that are no longer configured are deleted.
    """
    configured = {d.id for d in descriptors}
    for existing in await store.list_skills():
        if existing.owner is SkillOwner.SYSTEM and existing.id not in configured:
            logger.info("Deleting stale skill: %s", existing.id)
            await store.delete_skill(existing.id)

    for descriptor in descriptors:
        await store.upsert_skill(descriptor)
        logger.info("Stored skill: %s", descriptor.id)
