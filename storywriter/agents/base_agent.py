"""
BaseAgent - Common contract of the five pipeline steps.

An agent builds a role-specific prompt, calls the Generation Backend and, for
structured steps, normalizes the reply. Agents hold configuration only; every
call is independent, so one instance serves concurrent runs.
"""

import logging
from abc import ABC
from typing import Optional, Type, TypeVar

from pydantic import BaseModel

from storywriter.models.event import FailureEvent
from storywriter.models.roles import AgentRole
from storywriter.observability.metrics import PipelineMetrics
from storywriter.providers.base import GenerationBackend
from storywriter.utils.error_handling import CancellationFailure, GenerationFailure
from storywriter.utils.response_normalizer import FallbackBuilder, ResponseNormalizer
from storywriter.utils.text import nvl
from storywriter.utils.timing import Stopwatch

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

DEFAULT_MODEL = "gpt-4o-mini"


class BaseAgent(ABC):
    """Base class of every agent step."""

    role: AgentRole
    system_prompt: str = ""

    def __init__(
        self,
        backend: GenerationBackend,
        model: str = DEFAULT_MODEL,
        timeout: Optional[float] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        metrics: Optional[PipelineMetrics] = None,
    ):
        self.backend = backend
        self.model = model
        self.timeout = timeout
        self.normalizer = normalizer or ResponseNormalizer()
        self.metrics = metrics

    @property
    def name(self) -> str:
        return self.role.value

    def _ask(self, user_prompt: str) -> str:
        """
        Call the Generation Backend for this role.

        Raises:
            GenerationFailure: Any backend error, wrapped when necessary.
            CancellationFailure: The run was abandoned during the call.
        """
        logger.info(f"[{self.name}] starting (model={self.model})")
        stopwatch = Stopwatch().start()
        try:
            raw = self.backend.generate(
                self.name, self.model, self.system_prompt, user_prompt, timeout=self.timeout
            )
            if not isinstance(raw, str):
                raise GenerationFailure(
                    self.name, f"backend returned {type(raw).__name__} instead of text"
                )
        except CancellationFailure:
            logger.info(f"[{self.name}] cancelled after {stopwatch.stop()}ms")
            self._record(stopwatch.duration_ms, "cancelled")
            raise
        except GenerationFailure as e:
            logger.error(f"[{self.name}] generation failed after {stopwatch.stop()}ms: {e}")
            self._record(stopwatch.duration_ms, "error")
            raise
        except Exception as e:
            logger.error(f"[{self.name}] generation failed after {stopwatch.stop()}ms: {e}")
            self._record(stopwatch.duration_ms, "error")
            raise GenerationFailure(self.name, str(e) or type(e).__name__) from e

        logger.info(f"[{self.name}] completed in {stopwatch.stop()}ms ({len(raw)} chars)")
        self._record(stopwatch.duration_ms, "success")
        return raw

    def _normalize(self, raw: str, schema: Type[T], fallback: FallbackBuilder, event: FailureEvent) -> T:
        result = self.normalizer.normalize(raw, schema, fallback, event)
        if result.fallback_used:
            logger.warning(f"[{self.name}] using fallback {schema.__name__}")
            if self.metrics is not None:
                self.metrics.record_fallback(self.name)
        return result.value

    def _record(self, duration_ms: int, status: str) -> None:
        if self.metrics is not None:
            self.metrics.record_agent_execution(self.name, duration_ms, status)

    @staticmethod
    def _event_header(event: FailureEvent) -> str:
        return (
            f"**Error:** {event.error_message}\n"
            f"**Source:** {event.source.value}\n"
            f"**Test:** {nvl(event.test_name)}\n"
            f"**Context:** {nvl(event.context)}\n"
        )
