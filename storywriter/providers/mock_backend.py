"""Deterministic offline backend for demos and local runs."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def _default_payloads() -> Dict[str, Any]:
    return {
        "TechnicalAnalyzer": (
            "1. Error type: assertion failure on an HTTP status code.\n"
            "2. Component: service layer behind the REST controller.\n"
            "3. Stack trace shows the exception raised before the response was built.\n"
            "4. Likely integration-level issue."
        ),
        "RootCause": (
            "1. Root cause: an unhandled exception in the service layer is mapped to HTTP 500.\n"
            "2. Contributing factors: missing input validation.\n"
            "3. Fix directions: validate the payload, map domain errors to 4xx, add a regression test.\n"
            "4. Confirm with the server log for the failing request."
        ),
        "BugWriter": {
            "title": "Request fails with HTTP 500 instead of 200",
            "description": "The endpoint returns an internal server error for a valid request.",
            "stepsToReproduce": "1. Run the failing test\n2. Observe the response status",
            "expectedBehavior": "HTTP 200 with the processed result",
            "actualBehavior": "HTTP 500 Internal Server Error",
            "confidence": 0.7,
        },
        "StoryWriter": {
            "description": "As a customer I want my request to be processed so that I can complete my task.",
            "whatToDo": "Handle the failing case in the service layer and return a successful response.",
            "acceptanceCriteria": "Given a valid request\nWhen it is submitted\nThen the response status is 200",
            "additionalInformation": "Generated offline by the mock backend.",
            "confidence": 0.6,
        },
        "Severity": {
            "level": "Major",
            "rationale": "A core flow is broken for valid input but a workaround may exist.",
            "confidence": 0.6,
        },
    }


@dataclass
class MockBackend:
    """Returns fixed text per role; structured roles get JSON."""

    payloads: Dict[str, Any] = field(default_factory=_default_payloads)
    default: str = "No mock response configured for this role."

    def generate(
        self,
        role: str,
        model: str,
        system_prompt: str,
        user_prompt: str,
        timeout: Optional[float] = None,
    ) -> str:
        logger.info(f"[{role}] Mock generation (model={model})")
        payload = self.payloads.get(role, self.default)
        if isinstance(payload, (dict, list)):
            return json.dumps(payload)
        return str(payload)
