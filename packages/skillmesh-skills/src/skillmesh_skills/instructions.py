"""Instruction-tier skills: markdown rendered into the system prompt."""
from __future__ import annotations

import time
from pathlib import Path
from typing import TYPE_CHECKING

from skillmesh_core.logging import get_logger
from skillmesh_core.types import SkillTier

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from skillmesh_core.types import SkillDescriptor

logger = get_logger("skills.instructions")

DEFAULT_TTL_SECONDS = 60 * 60
_SEPARATOR = "\n\n---\n\n"


class InstructionLoader:
    """Renders enabled instruction skills, caching the text for a TTL.

    Inline ``instruction_content`` (or ``config["instructionContent"]``)
    takes priority over ``instruction_path``. Skills with neither, or with
    an unreadable file, are logged and skipped.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._cached: str | None = None
        self._cached_at = 0.0

    def render(self, skills: Iterable[SkillDescriptor]) -> str:
        """Return the concatenated instruction text.

        The cached text is served until the TTL expires or
        :meth:`invalidate` is called; *skills* is only read on reload.
        """
        if self._cached is not None and self._clock() - self._cached_at < self._ttl:
            return self._cached

        parts: list[str] = []
        for skill in skills:
            if skill.tier is not SkillTier.INSTRUCTION or not skill.enabled:
                continue
            content = self._content_for(skill)
            if content is not None:
                parts.append(f"## Skill: {skill.name}\n\n{content.strip()}")

        self._cached = _SEPARATOR.join(parts)
        self._cached_at = self._clock()
        return self._cached

    def invalidate(self) -> None:
        """Drop the cached text; the next render reloads."""
        self._cached = None
        self._cached_at = 0.0
        logger.info("Instruction skill cache cleared")

    @staticmethod
    def _content_for(skill: SkillDescriptor) -> str | None:
        inline = skill.config.get("instructionContent")
        if not isinstance(inline, str):
            inline = skill.instruction_content
        if inline:
            logger.info("Loaded inline instruction skill %s", skill.id)
            return inline

        if not skill.instruction_path:
            logger.warning(
                "Instruction skill %s has neither content nor path, skipping",
                skill.id,
            )
            return None

        try:
            content = Path(skill.instruction_path).read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning(
                "Could not load instruction skill %s from %s: %s",
                skill.id, skill.instruction_path, exc,
            )
            return None

        logger.info("Loaded instruction skill %s from %s", skill.id, skill.instruction_path)
        return content
