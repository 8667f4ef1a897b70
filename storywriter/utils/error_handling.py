"""
Error Handling Utilities

Provides:
- The error taxonomy of the agent pipeline
- Error classification for logs and metrics

Only GenerationFailure and CancellationFailure are fatal to a pipeline run.
ParseFailure is always absorbed by the response normalizer.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class StoryWriterError(Exception):
    """Base class for every error raised by the pipeline."""
    pass


class GenerationFailure(StoryWriterError):
    """Raised when a Generation Backend call times out, exits non-zero or hits an I/O error."""

    def __init__(self, role: str, message: str):
        self.role = role
        self.message = message
        super().__init__(f"[{role}] {message}")


class ParseFailure(StoryWriterError):
    """Raised when generated text does not match the expected schema."""

    def __init__(self, schema: str, message: str):
        self.schema = schema
        self.message = message
        super().__init__(f"{schema}: {message}")


class CancellationFailure(StoryWriterError):
    """Raised when a pipeline run is cancelled or its wait is interrupted."""

    def __init__(self, reason: str = "pipeline cancelled"):
        self.reason = reason
        super().__init__(reason)


class PipelineFailure(StoryWriterError):
    """
    Raised by the orchestrator when any step of the graph fails.

    Attributes:
        cause: The original exception (GenerationFailure, CancellationFailure, ...).
        stage: Name of the step that failed, if known.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None, stage: Optional[str] = None):
        self.cause = cause
        self.stage = stage
        super().__init__(message)


def classify_error(error: BaseException) -> str:
    """
    Classify an error for appropriate handling.

    Args:
        error: Exception to classify.

    Returns:
        Error category string.
    """
    if isinstance(error, PipelineFailure) and error.cause is not None:
        return classify_error(error.cause)

    if isinstance(error, CancellationFailure):
        return "cancelled"

    error_name = type(error).__name__.lower()
    error_msg = str(error).lower()

    # Network errors
    if any(x in error_name for x in ["connection", "network", "socket"]):
        return "network"
    if any(x in error_msg for x in ["connection refused", "network unreachable", "no such file"]):
        return "network"

    # Timeout errors
    if "timeout" in error_name or "timed out" in error_msg or "timeout" in error_msg:
        return "timeout"

    # Authentication errors
    if any(x in error_name for x in ["auth", "permission", "forbidden"]):
        return "auth"
    if any(x in error_msg for x in ["401", "403", "unauthorized"]):
        return "auth"

    # Validation errors
    if "validation" in error_name or "invalid" in error_msg:
        return "validation"

    # Rate limiting
    if "rate limit" in error_msg or "429" in error_msg:
        return "rate_limit"

    return "unknown"
