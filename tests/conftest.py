import json
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import pytest

from storywriter.agents.bug_writer import BugWriterAgent
from storywriter.agents.orchestrator import PipelineOrchestrator
from storywriter.agents.root_cause import RootCauseAgent
from storywriter.agents.severity import SeverityAgent
from storywriter.agents.story_writer import StoryWriterAgent
from storywriter.agents.technical_analyzer import TechnicalAnalyzerAgent
from storywriter.core.cancellation import current_token
from storywriter.models.event import FailureEvent, FailureSource
from storywriter.utils.error_handling import CancellationFailure
from storywriter.utils.timing import now

TECHNICAL_TEXT = "NullPointerException in PaymentService.charge"
ROOT_CAUSE_TEXT = "Payment gateway client is not initialised before charge()"

BUG_JSON = {
    "title": "Payment returns 500",
    "description": "Charging a card fails with an internal error",
    "stepsToReproduce": "Run PaymentServiceTest#pay",
    "expectedBehavior": "HTTP 200",
    "actualBehavior": "HTTP 500",
    "confidence": 0.8,
}
STORY_JSON = {
    "description": "As a customer I want to pay so that my order ships",
    "whatToDo": "Initialise the gateway client before charging",
    "acceptanceCriteria": "Given a cart When I pay Then I get a receipt",
    "additionalInformation": "checkout",
    "confidence": 0.7,
}
SEVERITY_JSON = {"level": "Critical", "rationale": "Checkout is broken", "confidence": 0.9}


def default_responses() -> Dict[str, Any]:
    return {
        "TechnicalAnalyzer": TECHNICAL_TEXT,
        "RootCause": ROOT_CAUSE_TEXT,
        "BugWriter": json.dumps(BUG_JSON),
        "StoryWriter": json.dumps(STORY_JSON),
        "Severity": json.dumps(SEVERITY_JSON),
    }


class StubBackend:
    """
    In-process Generation Backend.

    Per role: a fixed response, an artificial delay and an optional exception.
    Every call is recorded as (role, started_at, finished_at, user_prompt).
    Delays stop early when the run is cancelled.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = responses or default_responses()
        self.delays: Dict[str, float] = {}
        self.failures: Dict[str, BaseException] = {}
        self.calls: List[Tuple[str, float, float, str]] = []
        self.started: List[str] = []
        self._lock = threading.Lock()

    def generate(self, role, model, system_prompt, user_prompt, timeout=None):
        started_at = now()
        with self._lock:
            self.started.append(role)
        try:
            delay = self.delays.get(role, 0)
            if delay:
                token = current_token()
                stopped = threading.Event()
                unregister = token.register(stopped.set) if token is not None else (lambda: None)
                try:
                    if stopped.wait(delay):
                        raise CancellationFailure(f"[{role}] stopped")
                finally:
                    unregister()
            if role in self.failures:
                raise self.failures[role]
            return self.responses[role]
        finally:
            with self._lock:
                self.calls.append((role, started_at, now(), user_prompt))

    def roles_called(self) -> List[str]:
        with self._lock:
            return [call[0] for call in self.calls]

    def span(self, role: str) -> Tuple[float, float]:
        with self._lock:
            for call in self.calls:
                if call[0] == role:
                    return call[1], call[2]
        raise KeyError(role)

    def prompt(self, role: str) -> str:
        with self._lock:
            for call in self.calls:
                if call[0] == role:
                    return call[3]
        raise KeyError(role)


def build_orchestrator(backend, max_workers: int = 8, metrics=None) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        technical_analyzer=TechnicalAnalyzerAgent(backend, metrics=metrics),
        root_cause=RootCauseAgent(backend, metrics=metrics),
        bug_writer=BugWriterAgent(backend, metrics=metrics),
        story_writer=StoryWriterAgent(backend, metrics=metrics),
        severity=SeverityAgent(backend, metrics=metrics),
        max_workers=max_workers,
        metrics=metrics,
    )


@pytest.fixture
def failure_event() -> FailureEvent:
    return FailureEvent(
        source=FailureSource.JUNIT,
        test_name="PaymentServiceTest#pay",
        error_message="Expected 200 but was 500",
        stack_trace="java.lang.AssertionError: Expected 200 but was 500\n\tat PaymentServiceTest.pay(PaymentServiceTest.java:42)",
        context="checkout",
    )


@pytest.fixture
def stub_backend() -> StubBackend:
    return StubBackend()


@pytest.fixture
def orchestrator_factory():
    created: List[PipelineOrchestrator] = []

    def factory(backend, **kwargs) -> PipelineOrchestrator:
        orchestrator = build_orchestrator(backend, **kwargs)
        created.append(orchestrator)
        return orchestrator

    yield factory

    for orchestrator in created:
        orchestrator.shutdown()


@pytest.fixture
def wait_until():
    def wait(predicate, timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.005)
        return predicate()

    return wait
