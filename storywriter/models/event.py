"""
Failure Event - Immutable pipeline input

A single test failure or log excerpt submitted for analysis.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator

from storywriter.models.base import FrozenRecord


class FailureSource(str, Enum):
    """Origin / runner type of the failure."""
    JUNIT = "JUnit"
    MOCK_MVC = "MockMvc"
    CONCORDION = "Concordion"
    LOG = "Log"

    @classmethod
    def _missing_(cls, value: Any):
        # Accept JUNIT, junit, mock_mvc, mock-mvc, mockMvc, ...
        if isinstance(value, str):
            key = value.replace("_", "").replace("-", "").strip().lower()
            for member in cls:
                if member.value.lower() == key:
                    return member
        return None


class FailureEvent(FrozenRecord):
    """
    Test failure or error event that triggers the agent pipeline.

    Optional fields are rendered as "(not provided)" in prompts.
    """

    source: FailureSource = Field(..., description="Origin of the failure")
    test_name: Optional[str] = Field(None, description="Fully-qualified test method name")
    error_message: str = Field(..., description="Short error title / exception message")
    stack_trace: Optional[str] = Field(None, description="Full stack trace text")
    context: Optional[str] = Field(None, description="Class under test, module, feature area, ...")

    @field_validator("source", mode="before")
    @classmethod
    def validate_source(cls, v: Any) -> Any:
        if isinstance(v, str) and not isinstance(v, FailureSource):
            return FailureSource(v)
        return v

    @field_validator("error_message")
    @classmethod
    def validate_error_message(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("errorMessage must not be blank")
        return v
