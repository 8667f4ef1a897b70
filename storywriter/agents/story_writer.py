"""
Story Writer Agent

Translates the failure and its root cause into a business-oriented user story
with Gherkin-style acceptance criteria.
"""

from storywriter.agents.base_agent import BaseAgent
from storywriter.models.artifact import UserStory
from storywriter.models.event import FailureEvent
from storywriter.models.roles import AgentRole

SYSTEM_PROMPT = """You are a product owner and agile coach expert in writing user stories.
Translate a technical bug / failure into a clear user story.
You must respond with ONLY valid JSON matching this exact structure, no markdown, no explanation:
{
  "description": "<As a ... I want ... so that ...>",
  "whatToDo": "<the change the team has to deliver>",
  "acceptanceCriteria": "<Gherkin Given/When/Then or bullet points>",
  "additionalInformation": "<links, notes, open questions>",
  "confidence": <number between 0.0 and 1.0>
}"""


def user_story_fallback(raw: str, event: FailureEvent) -> UserStory:
    """User story that keeps the unparsed response as its description."""
    return UserStory(
        description=raw,
        what_to_do=f"Fix: {event.error_message}",
        acceptance_criteria="The failing scenario passes without errors.",
        additional_information="The generated story could not be parsed; the description holds the raw response.",
    )


class StoryWriterAgent(BaseAgent):
    role = AgentRole.STORY_WRITER
    system_prompt = SYSTEM_PROMPT

    def write(self, event: FailureEvent, root_cause: str) -> UserStory:
        raw = self._ask(self.build_prompt(event, root_cause))
        return self._normalize(raw, UserStory, user_story_fallback, event)

    def build_prompt(self, event: FailureEvent, root_cause: str) -> str:
        return (
            "## User Story Generation Request\n\n"
            f"{self._event_header(event)}\n"
            f"**Root Cause:**\n{root_cause}\n\n"
            "Generate the user story JSON now. Be business-oriented, not technical.\n"
            "The acceptance criteria should be in Gherkin Given/When/Then format.\n"
        )
