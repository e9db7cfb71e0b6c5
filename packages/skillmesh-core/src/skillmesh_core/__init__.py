"""skillmesh core: shared types, config, errors, and logging."""
from __future__ import annotations

from skillmesh_core.config import (
    AgentConfig,
    BackendConfig,
    DiscoveryConfig,
    LLMConfig,
    SkillmeshConfig,
    SkillsConfig,
)
from skillmesh_core.errors import (
    AgentBusyError,
    AgentError,
    ConfigError,
    IllegalTransitionError,
    NotConnectedError,
    SkillConnectionError,
    SkillError,
    SkillmeshError,
    SkillNotFoundError,
    SkillValidationError,
    TransportError,
)
from skillmesh_core.logging import get_logger, setup_logging
from skillmesh_core.types import (
    Message,
    SkillDescriptor,
    SkillOwner,
    SkillTier,
    ToolDescriptor,
    ToolResult,
    TopicConfig,
    TransportKind,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "AgentBusyError",
    # Config
    "AgentConfig",
    "AgentError",
    "BackendConfig",
    "ConfigError",
    "DiscoveryConfig",
    "IllegalTransitionError",
    "LLMConfig",
    # Types
    "Message",
    "NotConnectedError",
    "SkillConnectionError",
    "SkillDescriptor",
    "SkillError",
    "SkillNotFoundError",
    "SkillOwner",
    "SkillTier",
    "SkillValidationError",
    "SkillmeshConfig",
    "SkillmeshError",
    "SkillsConfig",
    "ToolDescriptor",
    "ToolResult",
    "TopicConfig",
    "TransportError",
    "TransportKind",
    # Version
    "__version__",
    # Logging
    "get_logger",
    "setup_logging",
]
