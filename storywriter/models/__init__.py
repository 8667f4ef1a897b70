from storywriter.models.artifact import (
    AgentResult,
    Artifact,
    BugReport,
    DEFAULT_SEVERITY,
    SeverityAssessment,
    SeverityLevel,
    UserStory,
)
from storywriter.models.event import FailureEvent, FailureSource
from storywriter.models.roles import AgentRole

__all__ = [
    "AgentResult",
    "AgentRole",
    "Artifact",
    "BugReport",
    "DEFAULT_SEVERITY",
    "FailureEvent",
    "FailureSource",
    "SeverityAssessment",
    "SeverityLevel",
    "UserStory",
]
