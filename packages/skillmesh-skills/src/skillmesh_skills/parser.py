"""SKILL.md parser: YAML frontmatter plus markdown instructions."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

import yaml
from skillmesh_core.errors import SkillValidationError
from skillmesh_core.types import SkillDescriptor, SkillOwner, SkillTier

if TYPE_CHECKING:
    from pathlib import Path


def parse_skill_md(path: Path) -> SkillDescriptor:
    """Parse a SKILL.md file into an instruction-tier descriptor.

    The file format is YAML frontmatter delimited by ``---`` lines, followed
    by a markdown body holding the instructions. ``id`` defaults to
    ``name``.

    Raises:
        SkillValidationError: If the file cannot be parsed or is missing
            required fields (``name``, ``description``).
        FileNotFoundError: If the file does not exist.
    """
    if not path.exists():
        msg = f"SKILL.md not found: {path}"
        raise FileNotFoundError(msg)

    text = path.read_text(encoding="utf-8")
    frontmatter, body = _split_frontmatter(text, path)
    meta = _parse_yaml(frontmatter, path)

    for required in ("name", "description"):
        if not meta.get(required):
            msg = f"SKILL.md missing required field '{required}': {path}"
            raise SkillValidationError(msg)

    return SkillDescriptor(
        id=str(meta.get("id") or meta["name"]),
        name=str(meta["name"]),
        tier=SkillTier.INSTRUCTION,
        version=str(meta.get("version", "0.1.0")),
        description=str(meta["description"]),
        enabled=bool(meta.get("enabled", True)),
        instruction_content=body.strip(),
        instruction_path=str(path),
        owner=_owner(meta.get("owner"), path),
        tags=_as_str_list(meta.get("tags")),
    )


def _split_frontmatter(text: str, path: Path) -> tuple[str, str]:
    """Split text into YAML frontmatter and markdown body."""
    stripped = text.lstrip("\n")
    if not stripped.startswith("---"):
        msg = f"SKILL.md missing YAML frontmatter (no opening '---'): {path}"
        raise SkillValidationError(msg)

    first_newline = stripped.index("\n")
    rest = stripped[first_newline + 1 :]
    closing_idx = rest.find("\n---")
    if closing_idx == -1:
        msg = f"SKILL.md missing closing '---' for frontmatter: {path}"
        raise SkillValidationError(msg)

    frontmatter = rest[:closing_idx]
    body = rest[closing_idx + 4 :]  # skip past "\n---"
    return frontmatter, body


def _parse_yaml(frontmatter: str, path: Path) -> dict[str, Any]:
    try:
        result = yaml.safe_load(frontmatter)
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML frontmatter in {path}: {exc}"
        raise SkillValidationError(msg) from exc

    if not isinstance(result, dict):
        msg = f"YAML frontmatter must be a mapping, got {type(result).__name__}: {path}"
        raise SkillValidationError(msg)

    return result


def _owner(value: Any, path: Path) -> SkillOwner:
    if value is None:
        return SkillOwner.SYSTEM
    try:
        return SkillOwner(str(value))
    except ValueError as exc:
        msg = f"Unknown skill owner {value!r}: {path}"
        raise SkillValidationError(msg) from exc


def _as_str_list(value: Any) -> list[str]:
    """Coerce a value to a list of strings, or return empty list."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item) for item in value]
    return [str(value)]
