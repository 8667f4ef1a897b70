"""
Cross-cutting utilities.

- error_handling.py: Error taxonomy and classification
- logging_context.py: Correlation ids for log records
- response_normalizer.py: Generated text to typed records
- text.py: Prompt and text helpers
- timing.py: Millisecond timing
"""

from storywriter.utils.error_handling import (
    CancellationFailure,
    GenerationFailure,
    ParseFailure,
    PipelineFailure,
    StoryWriterError,
    classify_error,
)

__all__ = [
    "CancellationFailure",
    "GenerationFailure",
    "ParseFailure",
    "PipelineFailure",
    "StoryWriterError",
    "classify_error",
]
