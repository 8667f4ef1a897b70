"""
Test suite for configuration management.

Verifies defaults, environment overrides, per-step fallbacks and validation.
"""

import os

import pytest
from pydantic import ValidationError

from storywriter.agents.orchestrator import PipelineOrchestrator
from storywriter.config import settings
from storywriter.config.settings import BackendType, Config, get_config, reload_config
from storywriter.models.roles import AgentRole
from storywriter.providers.factory import create_backend
from storywriter.providers.gh_cli import GhCliBackend
from storywriter.providers.github_models import GitHubModelsBackend, MissingTokenError
from storywriter.providers.mock_backend import MockBackend

ENV_PREFIXES = ("BACKEND_", "AGENTS_", "PIPELINE_", "API_")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith(ENV_PREFIXES) or key in ("ENVIRONMENT", "GITHUB_TOKEN"):
            monkeypatch.delenv(key)
    monkeypatch.setattr(settings, "_config", None)


class TestConfiguration:
    """Test the configuration system."""

    def test_defaults(self):
        config = Config()

        assert config.environment == "development"
        assert config.backend.type == BackendType.GH_API
        assert config.backend.timeout_seconds == 60.0
        assert config.agents.default_model == "gpt-4o-mini"
        assert config.pipeline.max_workers == 8
        assert config.pipeline.max_stacktrace_chars == 3000
        assert config.api.port == 8080

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "staging")
        monkeypatch.setenv("BACKEND_TYPE", "mock")
        monkeypatch.setenv("BACKEND_TIMEOUT_SECONDS", "15")
        monkeypatch.setenv("PIPELINE_MAX_WORKERS", "4")
        monkeypatch.setenv("API_LOG_LEVEL", "debug")

        config = Config()

        assert config.environment == "staging"
        assert config.backend.type == BackendType.MOCK
        assert config.backend.timeout_seconds == 15.0
        assert config.pipeline.max_workers == 4
        assert config.api.log_level == "DEBUG"

    def test_per_step_override_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("AGENTS_DEFAULT_MODEL", "gpt-4o")
        monkeypatch.setenv("AGENTS_SEVERITY__MODEL", "o3-mini")
        monkeypatch.setenv("AGENTS_ROOT_CAUSE__TIMEOUT_SECONDS", "120")

        agents = Config().agents

        assert agents.model_for(AgentRole.SEVERITY) == "o3-mini"
        assert agents.model_for(AgentRole.BUG_WRITER) == "gpt-4o"
        assert agents.timeout_for(AgentRole.ROOT_CAUSE) == 120.0
        assert agents.timeout_for(AgentRole.STORY_WRITER) is None

    def test_invalid_environment_rejected(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "invalid_env")

        with pytest.raises(ValidationError):
            Config()

    def test_invalid_log_level_rejected(self, monkeypatch):
        monkeypatch.setenv("API_LOG_LEVEL", "LOUD")

        with pytest.raises(ValidationError):
            Config()

    def test_pool_smaller_than_graph_width_rejected(self, monkeypatch):
        monkeypatch.setenv("PIPELINE_MAX_WORKERS", "2")

        with pytest.raises(ValidationError):
            Config()

    def test_mock_backend_not_allowed_in_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("BACKEND_TYPE", "mock")

        with pytest.raises(ValueError, match="not allowed in production"):
            reload_config()

    def test_get_config_is_cached(self):
        first = reload_config()

        assert get_config() is first


class TestBackendFactory:
    def test_gh_api(self):
        backend = create_backend(Config().backend)

        assert isinstance(backend, GhCliBackend)
        assert backend.strategy == "gh-api"

    def test_gh_copilot_explain(self, monkeypatch):
        monkeypatch.setenv("BACKEND_TYPE", "gh-copilot-explain")

        backend = create_backend(Config().backend)

        assert backend.strategy == "gh-copilot-explain"

    def test_github_models_requires_token(self, monkeypatch):
        monkeypatch.setenv("BACKEND_TYPE", "github-models")

        with pytest.raises(MissingTokenError):
            create_backend(Config().backend)

        monkeypatch.setenv("GITHUB_TOKEN", "t")
        assert isinstance(create_backend(Config().backend), GitHubModelsBackend)

    def test_mock(self, monkeypatch):
        monkeypatch.setenv("BACKEND_TYPE", "mock")

        assert isinstance(create_backend(Config().backend), MockBackend)


def test_orchestrator_from_config(monkeypatch):
    monkeypatch.setenv("AGENTS_BUG_WRITER__MODEL", "gpt-4o")
    monkeypatch.setenv("AGENTS_SEVERITY__TIMEOUT_SECONDS", "9")
    monkeypatch.setenv("PIPELINE_MAX_STACKTRACE_CHARS", "100")
    monkeypatch.setenv("PIPELINE_MAX_WORKERS", "5")

    with PipelineOrchestrator.from_config(Config(), MockBackend()) as orchestrator:
        assert orchestrator.max_workers == 5
        assert orchestrator.bug_writer.model == "gpt-4o"
        assert orchestrator.story_writer.model == "gpt-4o-mini"
        assert orchestrator.severity.timeout == 9.0
        assert orchestrator.root_cause.timeout is None
        assert orchestrator.technical_analyzer.max_stacktrace_chars == 100
