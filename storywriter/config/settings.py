"""
Centralized Configuration Management

Uses Pydantic Settings for type-safe environment variable loading. The
resulting Config is passed explicitly into the orchestrator; per-step model and
timeout overrides fall back to the pipeline-wide defaults.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storywriter.models.roles import AgentRole
from storywriter.providers.gh_cli import DEFAULT_MODELS_ENDPOINT


class BackendType(str, Enum):
    """Generation Backend implementations."""
    GH_API = "gh-api"
    GH_COPILOT_EXPLAIN = "gh-copilot-explain"
    GITHUB_MODELS = "github-models"
    MOCK = "mock"


class BackendConfig(BaseSettings):
    """Generation Backend configuration."""

    type: BackendType = Field(
        default=BackendType.GH_API,
        description="Which backend performs generation calls"
    )
    models_endpoint: str = Field(
        default=DEFAULT_MODELS_ENDPOINT,
        description="OpenAI-compatible chat completions endpoint"
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Per-call timeout"
    )
    gh_binary: str = Field(
        default="gh",
        description="Path to the GitHub CLI"
    )

    model_config = SettingsConfigDict(
        env_prefix="BACKEND_",
        case_sensitive=False
    )


class AgentOverride(BaseModel):
    """Per-step settings; None falls back to the pipeline-wide default."""
    model: Optional[str] = None
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


class AgentsConfig(BaseSettings):
    """Model selection for the agent steps."""

    default_model: str = Field(
        default="gpt-4o-mini",
        description="Model used by every step without an override"
    )
    technical_analyzer: AgentOverride = Field(default_factory=AgentOverride)
    root_cause: AgentOverride = Field(default_factory=AgentOverride)
    bug_writer: AgentOverride = Field(default_factory=AgentOverride)
    story_writer: AgentOverride = Field(default_factory=AgentOverride)
    severity: AgentOverride = Field(default_factory=AgentOverride)

    model_config = SettingsConfigDict(
        env_prefix="AGENTS_",
        env_nested_delimiter="__",
        case_sensitive=False
    )

    def override_for(self, role: AgentRole) -> AgentOverride:
        return getattr(self, role.config_key)

    def model_for(self, role: AgentRole) -> str:
        return self.override_for(role).model or self.default_model

    def timeout_for(self, role: AgentRole) -> Optional[float]:
        """Per-step timeout, or None to use the backend's configured timeout."""
        return self.override_for(role).timeout_seconds


class PipelineConfig(BaseSettings):
    """Orchestration settings."""

    max_workers: int = Field(
        default=8,
        ge=3,
        description="Worker pool size; the graph runs up to 3 steps at once"
    )
    max_stacktrace_chars: int = Field(
        default=3000,
        gt=0,
        description="Stack trace length sent to the technical analyzer"
    )
    raw_preview_chars: int = Field(
        default=200,
        gt=0,
        description="Length of raw-text previews in parse warnings"
    )

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        case_sensitive=False
    )


class APIConfig(BaseSettings):
    """FastAPI server configuration."""

    host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    port: int = Field(
        default=8080,
        description="API server port"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    model_config = SettingsConfigDict(
        env_prefix="API_",
        case_sensitive=False
    )


class Config(BaseSettings):
    """Main application configuration."""

    environment: str = Field(
        default="development",
        description="Application environment: development, staging, production"
    )

    backend: BackendConfig = Field(default_factory=BackendConfig)
    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    api: APIConfig = Field(default_factory=APIConfig)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["development", "staging", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"environment must be one of {valid_envs}")
        return v.lower()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def validate_required(self) -> None:
        """Validate configuration that only matters in production."""
        if self.environment == "production" and self.backend.type == BackendType.MOCK:
            raise ValueError("BACKEND_TYPE=mock is not allowed in production")


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
        _config.validate_required()
    return _config


def reload_config() -> Config:
    """Reload configuration from environment (useful for testing)."""
    global _config
    _config = Config()
    _config.validate_required()
    return _config
