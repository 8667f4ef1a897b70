"""
Root Cause Agent

Given the raw event and the technical analysis, deduces the most probable root
cause of the failure and suggests fix directions.
"""

from storywriter.agents.base_agent import BaseAgent
from storywriter.models.event import FailureEvent
from storywriter.models.roles import AgentRole

SYSTEM_PROMPT = """You are a root-cause analysis expert with deep knowledge of JUnit, MockMvc,
Concordion and application logs.
Identify the most probable root cause of the failure and propose fix directions.
Be precise, evidence-based, and actionable."""


class RootCauseAgent(BaseAgent):
    role = AgentRole.ROOT_CAUSE
    system_prompt = SYSTEM_PROMPT

    def analyze(self, event: FailureEvent, technical_analysis: str) -> str:
        return self._ask(self.build_prompt(event, technical_analysis))

    def build_prompt(self, event: FailureEvent, technical_analysis: str) -> str:
        return (
            "## Root Cause Analysis Request\n\n"
            f"{self._event_header(event)}\n"
            "**Technical Analysis (from analyzer agent):**\n"
            f"{technical_analysis}\n\n"
            "Based on the above, provide:\n"
            "1. Most probable root cause (1-2 sentences, specific)\n"
            "2. Contributing factors (if any)\n"
            "3. Suggested fix directions (2-3 actionable items)\n"
            "4. What additional information would confirm this root cause\n"
        )
