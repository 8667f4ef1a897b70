from enum import Enum


class AgentRole(str, Enum):
    """The five steps of the pipeline; also the role label sent to the backend."""
    TECHNICAL_ANALYZER = "TechnicalAnalyzer"
    ROOT_CAUSE = "RootCause"
    BUG_WRITER = "BugWriter"
    STORY_WRITER = "StoryWriter"
    SEVERITY = "Severity"

    @property
    def config_key(self) -> str:
        """snake_case name used for per-step configuration overrides."""
        return {
            AgentRole.TECHNICAL_ANALYZER: "technical_analyzer",
            AgentRole.ROOT_CAUSE: "root_cause",
            AgentRole.BUG_WRITER: "bug_writer",
            AgentRole.STORY_WRITER: "story_writer",
            AgentRole.SEVERITY: "severity",
        }[self]
