"""
Backend Factory - selects the Generation Backend from configuration.

Selectable via BACKEND_TYPE: gh-api, gh-copilot-explain, github-models, mock.
"""

import logging

from storywriter.config.settings import BackendConfig, BackendType
from storywriter.providers.base import GenerationBackend
from storywriter.providers.gh_cli import STRATEGY_API, STRATEGY_EXPLAIN, GhCliBackend
from storywriter.providers.github_models import GitHubModelsBackend
from storywriter.providers.mock_backend import MockBackend

logger = logging.getLogger(__name__)


def create_backend(config: BackendConfig) -> GenerationBackend:
    """
    Build the configured backend.

    Raises:
        MissingTokenError: github-models without GITHUB_TOKEN.
    """
    logger.info(f"Creating generation backend | type={config.type.value} | timeout={config.timeout_seconds}s")

    if config.type == BackendType.GH_API:
        return GhCliBackend(
            strategy=STRATEGY_API,
            models_endpoint=config.models_endpoint,
            timeout=config.timeout_seconds,
            gh_binary=config.gh_binary,
        )
    if config.type == BackendType.GH_COPILOT_EXPLAIN:
        return GhCliBackend(
            strategy=STRATEGY_EXPLAIN,
            timeout=config.timeout_seconds,
            gh_binary=config.gh_binary,
        )
    if config.type == BackendType.GITHUB_MODELS:
        return GitHubModelsBackend(endpoint=config.models_endpoint, timeout=config.timeout_seconds)
    if config.type == BackendType.MOCK:
        return MockBackend()

    raise ValueError(f"Unsupported backend type: {config.type}")
