"""
Technical Analyzer Agent

Parses the raw error and stack trace and produces a plain-text technical
summary: what failed, which component is involved, which error type.
"""

from typing import Optional

from storywriter.agents.base_agent import DEFAULT_MODEL, BaseAgent
from storywriter.models.event import FailureEvent
from storywriter.models.roles import AgentRole
from storywriter.providers.base import GenerationBackend
from storywriter.utils.text import nvl, truncate

SYSTEM_PROMPT = """You are a senior software engineer specializing in diagnosing test failures.
Analyze the provided failure and return a structured technical summary.
Be concise, precise, and focus only on factual observations.
Format your response as plain text with clear sections."""


class TechnicalAnalyzerAgent(BaseAgent):
    role = AgentRole.TECHNICAL_ANALYZER
    system_prompt = SYSTEM_PROMPT

    def __init__(
        self,
        backend: GenerationBackend,
        model: str = DEFAULT_MODEL,
        max_stacktrace_chars: int = 3000,
        **kwargs,
    ):
        super().__init__(backend, model, **kwargs)
        self.max_stacktrace_chars = max_stacktrace_chars

    def analyze(self, event: FailureEvent) -> str:
        return self._ask(self.build_prompt(event))

    def build_prompt(self, event: FailureEvent) -> str:
        stack_trace: Optional[str] = None
        if event.stack_trace is not None:
            stack_trace = truncate(event.stack_trace, self.max_stacktrace_chars)

        return (
            "## Test Failure Technical Analysis Request\n\n"
            f"**Source:** {event.source.value}\n"
            f"**Test:** {nvl(event.test_name)}\n"
            f"**Error:** {event.error_message}\n\n"
            "**Stack Trace:**\n"
            f"```\n{nvl(stack_trace)}\n```\n\n"
            f"**Additional Context:** {nvl(event.context)}\n\n"
            "Provide a technical analysis covering:\n"
            "1. Error type and classification\n"
            "2. Component / layer where the failure originated\n"
            "3. Key observations from the stack trace\n"
            "4. Whether this is likely a unit-level or integration-level issue\n"
        )
