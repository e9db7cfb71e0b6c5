"""Unified tool registry: one catalog over skills and legacy plugins.

Resolution order:

1. :class:`~skillmesh_skills.registry.SkillRegistry` (MCP-based skills)
2. :class:`~skillmesh_skills.plugins.LegacyPluginRegistry`

A legacy tool whose name is already served by a skill is dropped from
the catalog and recorded in :attr:`UnifiedToolRegistry.shadowed`.
"""
from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from skillmesh_core.logging import get_logger
from skillmesh_core.types import ToolResult

if TYPE_CHECKING:
    from skillmesh_core.types import ToolDescriptor

    from skillmesh_skills.plugins import LegacyPluginRegistry
    from skillmesh_skills.registry import SkillRegistry

logger = get_logger("skills.unified")


class UnifiedToolRegistry:
    """Merges skill and legacy-plugin tools and routes calls between them."""

    def __init__(
        self,
        skills: SkillRegistry | None,
        plugins: LegacyPluginRegistry,
    ) -> None:
        self._skills = skills
        self._plugins = plugins
        self.shadowed: set[str] = set()

    async def all_tool_definitions(self) -> list[ToolDescriptor]:
        """Skill tools first, then legacy tools with unclaimed names."""
        skill_tools = await self._skills.all_tools() if self._skills else []

        seen: set[str] = set()
        combined: list[ToolDescriptor] = []
        for tool in skill_tools:
            if tool.name not in seen:
                seen.add(tool.name)
                combined.append(tool)

        for tool in self._plugins.all_tools():
            if tool.name in seen:
                if tool.name not in self.shadowed:
                    logger.info(
                        "Plugin tool %s shadowed by skill tool with same name",
                        tool.name,
                    )
                self.shadowed.add(tool.name)
                continue
            seen.add(tool.name)
            combined.append(tool)

        return combined

    def has_tool(self, tool_name: str) -> bool:
        return (
            self._skills is not None and self._skills.has_tool(tool_name)
        ) or self._plugins.has_tool(tool_name)

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        """Run *tool_name*; a missing provider is a result, not an error."""
        if self._skills is not None and self._skills.has_tool(tool_name):
            return await self._skills.execute(tool_name, arguments)

        if self._plugins.has_tool(tool_name):
            return await self._plugins.execute(tool_name, arguments)

        logger.warning("No provider for tool %s", tool_name)
        return ToolResult.no_provider(tool_name)

    async def shutdown(self) -> None:
        """Shut down both registries; one failing does not stop the other."""
        pending = [self._plugins.shutdown()]
        if self._skills is not None:
            pending.insert(0, self._skills.shutdown())

        results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                logger.error("Registry shutdown failed", exc_info=result)
        logger.info("Unified tool registry shut down")
