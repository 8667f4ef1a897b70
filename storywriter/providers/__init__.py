"""
Generation Backends.

- base.py: GenerationBackend protocol
- gh_cli.py: `gh api` / `gh copilot explain` subprocess backend
- github_models.py: GitHub Models over HTTP (httpx)
- mock_backend.py: deterministic offline backend
- factory.py: backend selection from configuration
"""

from storywriter.providers.base import GenerationBackend
from storywriter.providers.gh_cli import GhCliBackend
from storywriter.providers.github_models import GitHubModelsBackend, MissingTokenError
from storywriter.providers.mock_backend import MockBackend

__all__ = [
    "GenerationBackend",
    "GhCliBackend",
    "GitHubModelsBackend",
    "MissingTokenError",
    "MockBackend",
]
