from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from skillmesh_core.errors import ConfigError


def _load_toml(path: Path) -> dict:
    """Load a TOML file, returning empty dict if missing."""
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base (1 level deep for TOML sections)."""
    merged = dict(base)
    for key, val in override.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(val, dict)
        ):
            merged[key] = {**merged[key], **val}
        else:
            merged[key] = val
    return merged


@dataclass(frozen=True, slots=True)
class LLMConfig:
    provider: str = "anthropic"
    model: str = "anthropic/claude-sonnet-4-5-20250929"
    api_key_env: str = "ANTHROPIC_API_KEY"
    base_url: str | None = None
    temperature: float = 0.0
    max_tokens: int = 8192


@dataclass(frozen=True, slots=True)
class BackendConfig:
    tier: str = "sqlite"
    sqlite_path: str = ".skillmesh/skillmesh.db"
    nats_url: str = "nats://localhost:4222"
    nats_creds_file: str | None = None
    nats_stream_prefix: str = "skillmesh"


@dataclass(frozen=True, slots=True)
class SkillsConfig:
    descriptors_path: str | None = None
    plugins_path: str = "/etc/skillmesh/PLUGINS.json"
    instruction_ttl_seconds: float = 3600.0  # 1 hour
    client_name_prefix: str = "skillmesh"


@dataclass(frozen=True, slots=True)
class AgentConfig:
    max_iterations: int = 20
    prompts_dir: str = "prompts"
    initial_state: str | None = None


@dataclass(frozen=True, slots=True)
class DiscoveryConfig:
    heartbeat_timeout_seconds: float = 90.0  # 3 missed heartbeats
    monitor_interval_seconds: float = 30.0
    connect_retry_delay_seconds: float = 3.0
    max_connect_retries: int = 3


@dataclass(frozen=True, slots=True)
class SkillmeshConfig:
    """Top-level configuration, parsed from skillmesh.toml."""
    project_name: str = "skillmesh"
    llm: LLMConfig = field(default_factory=LLMConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    skills: SkillsConfig = field(default_factory=SkillsConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)

    @classmethod
    def from_toml(
        cls, path: Path | str = "skillmesh.toml"
    ) -> SkillmeshConfig:
        path = Path(path)
        raw = _load_toml(path)
        return cls._from_raw(raw)

    @classmethod
    def load(
        cls, project_dir: Path | str | None = None
    ) -> SkillmeshConfig:
        """Load config with global → project layering.

        Resolution order (later wins):
        1. Built-in defaults
        2. ~/.skillmesh/config.toml (global)
        3. .skillmesh/config.toml or skillmesh.toml (project)
        """
        global_path = Path.home() / ".skillmesh" / "config.toml"

        project_dir = (
            Path.cwd() if project_dir is None else Path(project_dir)
        )

        project_path = project_dir / ".skillmesh" / "config.toml"
        if not project_path.exists():
            project_path = project_dir / "skillmesh.toml"

        global_raw = _load_toml(global_path)
        project_raw = _load_toml(project_path)
        merged = _deep_merge(global_raw, project_raw)

        return cls._from_raw(merged)

    @classmethod
    def _from_raw(cls, raw: dict) -> SkillmeshConfig:
        """Build SkillmeshConfig from a raw TOML dict."""

        def _pick(section: dict, dc: type) -> dict:
            fields = dc.__dataclass_fields__
            return {
                k: v for k, v in section.items() if k in fields
            }

        return cls(
            project_name=raw.get("project", {}).get(
                "name", "skillmesh"
            ),
            llm=LLMConfig(**_pick(raw.get("llm", {}), LLMConfig)),
            backend=BackendConfig(
                **_pick(raw.get("backend", {}), BackendConfig)
            ),
            skills=SkillsConfig(
                **_pick(raw.get("skills", {}), SkillsConfig)
            ),
            agent=AgentConfig(
                **_pick(raw.get("agent", {}), AgentConfig)
            ),
            discovery=DiscoveryConfig(
                **_pick(raw.get("discovery", {}), DiscoveryConfig)
            ),
        )
