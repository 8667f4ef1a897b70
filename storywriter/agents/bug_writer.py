"""
Bug Writer Agent

Produces a structured bug report: title, description, reproduction steps,
expected and actual behaviour.
"""

from storywriter.agents.base_agent import BaseAgent
from storywriter.models.artifact import BugReport
from storywriter.models.event import FailureEvent
from storywriter.models.roles import AgentRole
from storywriter.utils.text import nvl

NOT_PARSED = "(not parsed)"

SYSTEM_PROMPT = """You are a QA engineer expert in writing clear, actionable bug reports.
You must respond with ONLY valid JSON matching this exact structure, no markdown, no explanation:
{
  "title": "<short title, at most 80 chars>",
  "description": "<detailed description>",
  "stepsToReproduce": "<numbered steps or test name>",
  "expectedBehavior": "<what should happen>",
  "actualBehavior": "<what actually happened>",
  "confidence": <number between 0.0 and 1.0>
}"""


def bug_report_fallback(raw: str, event: FailureEvent) -> BugReport:
    """Bug report that keeps the unparsed response as its description."""
    return BugReport(
        title=f"Bug: {event.error_message}",
        description=raw,
        steps_to_reproduce=nvl(event.test_name),
        expected_behavior=NOT_PARSED,
        actual_behavior=event.error_message,
    )


class BugWriterAgent(BaseAgent):
    role = AgentRole.BUG_WRITER
    system_prompt = SYSTEM_PROMPT

    def write(self, event: FailureEvent, technical_analysis: str, root_cause: str) -> BugReport:
        raw = self._ask(self.build_prompt(event, technical_analysis, root_cause))
        return self._normalize(raw, BugReport, bug_report_fallback, event)

    def build_prompt(self, event: FailureEvent, technical_analysis: str, root_cause: str) -> str:
        return (
            "## Bug Report Generation Request\n\n"
            f"{self._event_header(event)}\n"
            f"**Technical Analysis:**\n{technical_analysis}\n\n"
            f"**Root Cause:**\n{root_cause}\n\n"
            "Generate the bug report JSON now.\n"
        )
