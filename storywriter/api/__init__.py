"""HTTP surface of the story writer (FastAPI)."""

from storywriter.api.server import create_app

__all__ = ["create_app"]
