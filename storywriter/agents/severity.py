"""
Severity Agent

Assesses how severe the failure is from the error, its root cause and the
affected component.
"""

from storywriter.agents.base_agent import BaseAgent
from storywriter.models.artifact import DEFAULT_SEVERITY, SeverityAssessment
from storywriter.models.event import FailureEvent
from storywriter.models.roles import AgentRole

SYSTEM_PROMPT = """You are a senior engineering manager expert in triaging software defects.
Determine the severity of the reported failure using this scale:
  Blocker  = production blocker, no workaround
  Critical = major functionality broken
  Major    = feature partially impacted
  Minor    = minor issue or cosmetic
You must respond with ONLY valid JSON matching this exact structure, no markdown, no explanation:
{
  "level": "<Blocker|Critical|Major|Minor>",
  "rationale": "<2-3 sentence justification>",
  "confidence": <number between 0.0 and 1.0>
}"""


def severity_fallback(raw: str, event: FailureEvent) -> SeverityAssessment:
    """Default-level assessment whose rationale is the unparsed response."""
    return SeverityAssessment(level=DEFAULT_SEVERITY, rationale=raw)


class SeverityAgent(BaseAgent):
    role = AgentRole.SEVERITY
    system_prompt = SYSTEM_PROMPT

    def assess(self, event: FailureEvent, technical_analysis: str, root_cause: str) -> SeverityAssessment:
        raw = self._ask(self.build_prompt(event, technical_analysis, root_cause))
        return self._normalize(raw, SeverityAssessment, severity_fallback, event)

    def build_prompt(self, event: FailureEvent, technical_analysis: str, root_cause: str) -> str:
        return (
            "## Severity Assessment Request\n\n"
            f"{self._event_header(event)}\n"
            f"**Technical Analysis:**\n{technical_analysis}\n\n"
            f"**Root Cause:**\n{root_cause}\n\n"
            "Assess the severity and return the JSON now.\n"
        )
