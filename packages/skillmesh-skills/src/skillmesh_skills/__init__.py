"""skillmesh skills: MCP tool clients, skill and plugin registries, discovery."""
from __future__ import annotations

from skillmesh_skills.discovery import ANNOUNCE_TOPIC, ExtensionMonitor, heartbeat_topic
from skillmesh_skills.instructions import InstructionLoader
from skillmesh_skills.loader import SkillLoader, load_descriptor_file, sync_store
from skillmesh_skills.parser import parse_skill_md
from skillmesh_skills.plugins import (
    LegacyPlugin,
    LegacyPluginRegistry,
    PluginContext,
    load_plugin_configs,
    migrate_plugin_configs,
)
from skillmesh_skills.registry import SkillRegistry, sanitize_tool_name
from skillmesh_skills.tool_client import ToolClientManager
from skillmesh_skills.types import (
    ExtensionAnnounce,
    McpToolResult,
    PluginConfig,
    TriggerEvent,
)
from skillmesh_skills.unified import UnifiedToolRegistry

__all__ = [
    "ANNOUNCE_TOPIC",
    "ExtensionAnnounce",
    "ExtensionMonitor",
    "InstructionLoader",
    "LegacyPlugin",
    "LegacyPluginRegistry",
    "McpToolResult",
    "PluginConfig",
    "PluginContext",
    "SkillLoader",
    "SkillRegistry",
    "ToolClientManager",
    "TriggerEvent",
    "UnifiedToolRegistry",
    "heartbeat_topic",
    "load_descriptor_file",
    "load_plugin_configs",
    "migrate_plugin_configs",
    "parse_skill_md",
    "sanitize_tool_name",
    "sync_store",
]
