"""
Artifact Models - Outputs of the agent pipeline

BugReport, UserStory and SeverityAssessment are parsed from generated JSON.
Their duration_ms is always overwritten with the orchestrator's measurement.
"""

from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import Field, field_validator

from storywriter.models.base import FrozenRecord

T = TypeVar("T")


class SeverityLevel(str, Enum):
    """Severity label set."""
    BLOCKER = "Blocker"
    CRITICAL = "Critical"
    MAJOR = "Major"
    MINOR = "Minor"


# P1..P4 priority scale accepted as aliases
_PRIORITY_ALIASES = {
    "p1": SeverityLevel.BLOCKER,
    "p2": SeverityLevel.CRITICAL,
    "p3": SeverityLevel.MAJOR,
    "p4": SeverityLevel.MINOR,
}

DEFAULT_SEVERITY = SeverityLevel.MAJOR


class AgentResult(FrozenRecord, Generic[T]):
    """Output of one agent step with its measured duration."""

    payload: T
    duration_ms: int = Field(0, ge=0)


class BugReport(FrozenRecord):
    """Structured bug report produced by the Bug Writer step."""

    title: str
    description: str
    steps_to_reproduce: str
    expected_behavior: str
    actual_behavior: str
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    duration_ms: int = Field(0, ge=0)


class UserStory(FrozenRecord):
    """User story produced by the Story Writer step."""

    description: str
    what_to_do: str
    acceptance_criteria: str
    additional_information: str = ""
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    duration_ms: int = Field(0, ge=0)


class SeverityAssessment(FrozenRecord):
    """Severity assessment produced by the Severity step."""

    level: SeverityLevel
    rationale: str
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    duration_ms: int = Field(0, ge=0)

    @field_validator("level", mode="before")
    @classmethod
    def validate_level(cls, v: Any) -> Any:
        if isinstance(v, str) and not isinstance(v, SeverityLevel):
            key = v.strip().lower()
            if key in _PRIORITY_ALIASES:
                return _PRIORITY_ALIASES[key]
            for member in SeverityLevel:
                if member.value.lower() == key:
                    return member
        return v


class Artifact(FrozenRecord):
    """Final aggregate of one pipeline run."""

    technical_analysis: AgentResult[str]
    root_cause: AgentResult[str]
    bug_report: BugReport
    user_story: UserStory
    severity: SeverityAssessment
    total_ms: int = Field(..., ge=0)
