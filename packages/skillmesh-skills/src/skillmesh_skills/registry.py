"""Skill registry: owns skill descriptors and routes tool calls to MCP clients."""
from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from skillmesh_core.logging import get_logger
from skillmesh_core.types import (
    SkillOwner,
    SkillTier,
    ToolDescriptor,
    ToolResult,
    TransportKind,
)

from skillmesh_skills.instructions import InstructionLoader

if TYPE_CHECKING:
    from collections.abc import Iterable

    from skillmesh_core.types import SkillDescriptor
    from skillmesh_runtime.protocols.skill_store import SkillStore

    from skillmesh_skills.tool_client import ToolClientManager

logger = get_logger("skills.registry")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")

_TIER_LABELS: dict[SkillTier, str] = {
    SkillTier.INSTRUCTION: "Instruction",
    SkillTier.STDIO: "Stdio",
    SkillTier.SIDECAR: "Sidecar",
    SkillTier.SERVICE: "Service",
}

_OWNER_HEADINGS: list[tuple[SkillOwner, str]] = [
    (SkillOwner.SYSTEM, "System Skills:"),
    (SkillOwner.AGENT, "Agent-Installed Skills:"),
    (SkillOwner.EXTENSION, "Extension Skills:"),
]


def sanitize_tool_name(name: str) -> str:
    """Coerce an MCP tool name to ``^[a-zA-Z0-9_-]{1,128}$``."""
    return _UNSAFE_CHARS.sub("_", name)[:128]


class SkillRegistry:
    """Central registry for configured skills.

    * Instruction skills hold no connection; their text is rendered by
      :class:`InstructionLoader`.
    * Stdio skills connect through ``ToolClientManager.connect_stdio``.
    * Sidecar and service skills connect through
      ``ToolClientManager.connect_http``.

    Tools are discovered per skill with ``list_tools``, stored under a
    sanitised name, and routed back to the owning skill on ``execute``.
    """

    def __init__(
        self,
        clients: ToolClientManager,
        instructions: InstructionLoader | None = None,
    ) -> None:
        self._clients = clients
        self._instructions = instructions or InstructionLoader()
        self._skills: dict[str, SkillDescriptor] = {}
        self._tool_to_skill: dict[str, str] = {}
        self._original_names: dict[str, str] = {}
        self._tool_cache: dict[str, list[ToolDescriptor]] = {}

    # ── Loading ─────────────────────────────────────────────────────

    async def load(self, skills: Iterable[SkillDescriptor]) -> None:
        """Register enabled skills and connect the connecting tiers.

        A skill that fails to connect is logged and skipped so one broken
        provider never blocks startup.
        """
        for skill in skills:
            if not skill.enabled:
                continue
            if skill.id in self._skills:
                await self._release(skill.id)
            self._skills[skill.id] = skill
            if not skill.connects:
                continue
            try:
                await self._connect_skill(skill)
            except Exception:
                logger.exception(
                    "Failed to connect skill %s at startup, skipping", skill.id
                )

        self._instructions.invalidate()
        logger.info(
            "Skill registry loaded: %d skills, %d tools",
            len(self._skills), len(self._tool_to_skill),
        )

    async def load_from_store(self, store: SkillStore) -> None:
        await self.load(await store.enabled_skills())

    async def connect_and_register(self, skill: SkillDescriptor) -> None:
        """Register *skill* and connect it, raising on connect failure.

        Re-registering a known id first drops its tools and closes its old
        connection, whatever the new tier.
        """
        previous = self._skills.get(skill.id)
        if previous is not None:
            await self._release(skill.id)
            if not previous.connects:
                self._instructions.invalidate()
        self._skills[skill.id] = skill
        if skill.connects:
            await self._connect_skill(skill)
        else:
            self._instructions.invalidate()

    async def update_skill(self, skill: SkillDescriptor) -> None:
        """Apply a changed descriptor.

        Disabling a skill disconnects it; an enabled skill is reconnected
        with its new parameters.
        """
        if not skill.enabled:
            await self.disconnect_skill(skill.id)
            return
        await self.connect_and_register(skill)

    async def disconnect_skill(self, skill_id: str) -> None:
        """Unregister *skill_id*, drop its tools and close its connection."""
        await self._release(skill_id)
        removed = self._skills.pop(skill_id, None)
        if removed is not None and not removed.connects:
            self._instructions.invalidate()
        logger.info(
            "Skill %s disconnected and unregistered", skill_id,
            extra={"skill_id": skill_id},
        )

    async def _release(self, skill_id: str) -> None:
        self._forget_tools(skill_id)
        self._tool_cache.pop(skill_id, None)
        await self._clients.close(skill_id)

    async def _connect_skill(self, skill: SkillDescriptor) -> None:
        if skill.tier is SkillTier.STDIO:
            if not skill.stdio_command:
                logger.warning("Stdio skill %s missing stdio_command, skipping", skill.id)
                return
            env = skill.config.get("env")
            await self._clients.connect_stdio(
                skill.id,
                skill.stdio_command,
                list(skill.stdio_args),
                dict(env) if isinstance(env, dict) else None,
            )
        else:
            if not skill.http_url:
                logger.warning(
                    "%s skill %s missing http_url, skipping",
                    _TIER_LABELS[skill.tier], skill.id,
                )
                return
            headers = skill.config.get("headers")
            await self._clients.connect_http(
                skill.id,
                skill.http_url,
                skill.transport or TransportKind.STREAMABLE_HTTP,
                dict(headers) if isinstance(headers, dict) else None,
            )

        await self.discover_tools(skill.id)

    async def discover_tools(self, skill_id: str) -> list[ToolDescriptor]:
        """(Re-)discover the tools of a connected skill.

        A tool whose sanitised name is already owned by another skill is
        skipped.
        """
        self._forget_tools(skill_id)
        try:
            listed = await self._clients.list_tools(skill_id)
        except Exception:
            logger.exception("Failed to discover tools for skill %s", skill_id)
            self._tool_cache.pop(skill_id, None)
            return []

        cached: list[ToolDescriptor] = []
        for tool in listed:
            safe_name = sanitize_tool_name(tool.name)
            existing = self._tool_to_skill.get(safe_name)
            if existing is not None and not self._clients.is_connected(existing):
                logger.info(
                    "Releasing tools of disconnected skill %s to %s", existing, skill_id
                )
                self._forget_tools(existing)
                self._tool_cache.pop(existing, None)
                existing = None
            if existing is not None:
                logger.warning(
                    "Tool %s from %s conflicts with skill %s, skipping duplicate",
                    tool.name, skill_id, existing,
                )
                continue

            self._tool_to_skill[safe_name] = skill_id
            if safe_name != tool.name:
                self._original_names[safe_name] = tool.name
            cached.append(
                ToolDescriptor(
                    name=safe_name,
                    description=tool.description,
                    input_schema=tool.input_schema,
                    owner_id=skill_id,
                )
            )

        self._tool_cache[skill_id] = cached
        logger.info(
            "Discovered %d tools from %s: %s",
            len(cached), skill_id, ", ".join(t.name for t in cached),
        )
        return cached

    def _forget_tools(self, skill_id: str) -> None:
        for name in [n for n, sid in self._tool_to_skill.items() if sid == skill_id]:
            del self._tool_to_skill[name]
            self._original_names.pop(name, None)

    # ── Catalog ─────────────────────────────────────────────────────

    async def all_tools(self) -> list[ToolDescriptor]:
        """Tools of every enabled skill that is connected right now."""
        tools: list[ToolDescriptor] = []
        for skill_id, skill in list(self._skills.items()):
            if not skill.connects or not skill.enabled:
                continue
            if not self._clients.is_connected(skill_id):
                continue

            cached = self._tool_cache.get(skill_id)
            if cached is None:
                cached = await self.discover_tools(skill_id)
            tools.extend(cached)
        return tools

    def has_tool(self, tool_name: str) -> bool:
        skill_id = self._tool_to_skill.get(tool_name)
        return skill_id is not None and self._clients.is_connected(skill_id)

    def skills(self) -> list[SkillDescriptor]:
        return list(self._skills.values())

    def instructions(self) -> str:
        """Rendered instruction-tier text for the system prompt."""
        return self._instructions.render(self._skills.values())

    def invalidate_instructions(self) -> None:
        self._instructions.invalidate()

    # ── Execution ───────────────────────────────────────────────────

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        """Route *tool_name* to its skill and fold the MCP result to text."""
        skill_id = self._tool_to_skill.get(tool_name)
        if skill_id is None:
            return ToolResult(
                result=f"No skill registered for tool: {tool_name}",
                is_error=True,
            )

        mcp_name = self._original_names.get(tool_name, tool_name)
        try:
            mcp_result = await self._clients.call_tool(skill_id, mcp_name, arguments)
        except Exception as exc:
            logger.error(
                "Skill tool %s on %s failed: %s", tool_name, skill_id, exc,
                extra={"skill_id": skill_id, "tool": tool_name},
            )
            return ToolResult(
                result=f"Skill tool execution failed: {exc}",
                is_error=True,
            )

        text = mcp_result.text()
        if mcp_result.is_error:
            return ToolResult(result=f"Tool error: {text}", is_error=True)
        return ToolResult(result=text)

    # ── Reporting ───────────────────────────────────────────────────

    def capabilities_summary(
        self, skills: Iterable[SkillDescriptor] | None = None
    ) -> str:
        """Human-readable listing of skills grouped by owner.

        *skills* defaults to the registered skills; pass the full store
        listing to include disabled ones.
        """
        all_skills = list(skills) if skills is not None else self.skills()
        if not all_skills:
            return "No skills registered."

        lines: list[str] = []
        for owner, heading in _OWNER_HEADINGS:
            group = [s for s in all_skills if s.owner is owner]
            if not group:
                continue
            if lines:
                lines.append("")
            lines.append(heading)
            for skill in group:
                status = "enabled" if skill.enabled else "disabled"
                tier = _TIER_LABELS[skill.tier]
                tool_info = ""
                if skill.connects:
                    tool_info = f", {len(self._tool_cache.get(skill.id, []))} tools"
                lines.append(f"  - {skill.name} ({tier}, {status}{tool_info})")

        lines.append("")
        lines.append(
            f"Total: {len(all_skills)} skills, {len(self._tool_to_skill)} MCP tools"
        )
        return "\n".join(lines)

    async def shutdown(self) -> None:
        """Close every connection and clear all registrations."""
        await self._clients.close_all()
        self._tool_to_skill.clear()
        self._original_names.clear()
        self._tool_cache.clear()
        self._skills.clear()
        self._instructions.invalidate()
        logger.info("Skill registry shut down")
