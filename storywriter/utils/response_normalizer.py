"""
Response Normalizer - Generated text to typed record

Converts the raw text returned by a Generation Backend into a pydantic record.
Malformed text is never an error: it is turned into a deterministic fallback
record that embeds the raw text verbatim, and the parse failure is logged.
"""

import json
import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from storywriter.models.event import FailureEvent
from storywriter.utils.error_handling import ParseFailure
from storywriter.utils.text import preview, strip_code_fence

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

FallbackBuilder = Callable[[str, FailureEvent], T]


@dataclass(frozen=True)
class NormalizationResult(Generic[T]):
    """
    Always-successful outcome of a normalization.

    Attributes:
        value: Parsed record, or the fallback record when parsing failed.
        fallback_used: True when value came from the fallback builder.
        error: The ParseFailure that triggered the fallback, if any.
    """
    value: T
    fallback_used: bool = False
    error: Optional[ParseFailure] = None


class ResponseNormalizer:
    """
    Normalizes generated text into structured records.

    Steps:
    1. Strip a single wrapping code fence, if present.
    2. Strict parse into the schema.
    3. Drop any self-reported duration before validation (the orchestrator measures it).
    4. On failure, build the fallback record from the raw text and log a warning.
    """

    def __init__(self, preview_chars: int = 200):
        """
        Initialize normalizer.

        Args:
            preview_chars: Length of the raw-text preview written to the log.
        """
        self._preview_chars = preview_chars

    def normalize(
        self,
        raw: str,
        schema: Type[T],
        fallback: FallbackBuilder,
        event: FailureEvent,
    ) -> NormalizationResult[T]:
        """
        Parse raw into schema, or build a fallback record.

        Args:
            raw: Text returned by the Generation Backend.
            schema: pydantic model to parse into.
            fallback: Builder called with (raw, event) when parsing fails.
            event: The failure event being processed.

        Returns:
            NormalizationResult; never raises for malformed text.
        """
        try:
            value = self.parse(raw, schema)
        except ParseFailure as e:
            logger.warning(
                f"[Normalizer] {schema.__name__} response is not valid structured output, "
                f"using fallback: {e.message} | raw={preview(raw or '', self._preview_chars)!r}"
            )
            return NormalizationResult(value=fallback(raw, event), fallback_used=True, error=e)

        return NormalizationResult(value=value)

    def parse(self, raw: str, schema: Type[T]) -> T:
        """
        Strict parse of raw text into schema.

        Raises:
            ParseFailure: If the text is not a JSON object matching schema.
        """
        if raw is None or not raw.strip():
            raise ParseFailure(schema.__name__, "empty response")

        try:
            data = json.loads(strip_code_fence(raw))
        except ValueError as e:
            raise ParseFailure(schema.__name__, f"invalid JSON: {e}") from e

        if isinstance(data, dict):
            # durations are measured by the orchestrator, never taken from the text
            data.pop("durationMs", None)
            data.pop("duration_ms", None)
        try:
            return schema.model_validate(data)
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            )
            raise ParseFailure(schema.__name__, errors) from e
