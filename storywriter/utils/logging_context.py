"""
Logging Context - Correlation ID for pipeline runs

Every pipeline run gets a correlation id. The id lives in a ContextVar, so it
follows the run into the worker threads that execute the agent steps (the task
graph submits each step inside a copy of the caller's context).
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Optional

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s"


class CorrelationIdFilter(logging.Filter):
    """Filter that adds correlation_id to every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get() or "N/A"
        return True


class LoggingContext:
    """Access to the logging context of the current run."""

    @staticmethod
    def set_correlation_id(correlation_id: Optional[str] = None) -> str:
        """Define correlation_id (a new one is generated when not provided).

        Returns:
            The correlation_id now in effect
        """
        if not correlation_id:
            correlation_id = f"run_{uuid.uuid4().hex[:12]}"
        _correlation_id.set(correlation_id)
        return correlation_id

    @staticmethod
    def get_correlation_id() -> str:
        return _correlation_id.get()

    @staticmethod
    def clear() -> None:
        _correlation_id.set("")


def setup_logging(log_level: str = "INFO") -> None:
    """Configure stdout logging with correlation ids for the application."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[handler],
        force=True,
    )
