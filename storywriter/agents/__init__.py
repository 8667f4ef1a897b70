"""
Agent steps of the failure-to-story pipeline.

- technical_analyzer.py: Technical summary of the failure (plain text)
- root_cause.py: Most probable root cause (plain text)
- bug_writer.py: BugReport
- story_writer.py: UserStory
- severity.py: SeverityAssessment
- orchestrator.py: Dependency-graph execution of the five steps
"""

from storywriter.agents.base_agent import BaseAgent
from storywriter.agents.bug_writer import BugWriterAgent
from storywriter.agents.orchestrator import PipelineOrchestrator, PipelineRun
from storywriter.agents.root_cause import RootCauseAgent
from storywriter.agents.severity import SeverityAgent
from storywriter.agents.story_writer import StoryWriterAgent
from storywriter.agents.technical_analyzer import TechnicalAnalyzerAgent

__all__ = [
    "BaseAgent",
    "BugWriterAgent",
    "PipelineOrchestrator",
    "PipelineRun",
    "RootCauseAgent",
    "SeverityAgent",
    "StoryWriterAgent",
    "TechnicalAnalyzerAgent",
]
