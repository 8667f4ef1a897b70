"""
Pipeline Orchestrator - Executes the five agent steps as a dependency graph

Graph:
    TechnicalAnalyzer -> RootCause -> {BugWriter, StoryWriter, Severity}

BugWriter and Severity also read the technical analysis. The three leaves are
independent and run concurrently on the shared worker pool as soon as the root
cause is available.

Failure policy: fail fast and cancel. The first Generation Backend failure
aborts the run with a PipelineFailure; steps not yet started are never started
and running steps are asked to stop through the run's CancellationToken.
Malformed structured output is never a failure (see ResponseNormalizer).
"""

import contextvars
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from storywriter.agents.bug_writer import BugWriterAgent
from storywriter.agents.root_cause import RootCauseAgent
from storywriter.agents.severity import SeverityAgent
from storywriter.agents.story_writer import StoryWriterAgent
from storywriter.agents.technical_analyzer import TechnicalAnalyzerAgent
from storywriter.config.settings import Config
from storywriter.core.task_graph import GraphRun, NodeFailedError, NodeResult, TaskGraph, TaskNode
from storywriter.models.artifact import AgentResult, Artifact
from storywriter.models.event import FailureEvent
from storywriter.models.roles import AgentRole
from storywriter.observability.metrics import PipelineMetrics
from storywriter.providers.base import GenerationBackend
from storywriter.utils.error_handling import CancellationFailure, PipelineFailure, classify_error
from storywriter.utils.logging_context import LoggingContext
from storywriter.utils.response_normalizer import ResponseNormalizer

logger = logging.getLogger(__name__)

MIN_WORKERS = 3

TA = AgentRole.TECHNICAL_ANALYZER.value
RC = AgentRole.ROOT_CAUSE.value
BW = AgentRole.BUG_WRITER.value
SW = AgentRole.STORY_WRITER.value
SV = AgentRole.SEVERITY.value


class PipelineRun:
    """
    Handle on one in-flight pipeline run.

    result() blocks until the artifact is ready; cancel() abandons the run.
    """

    def __init__(
        self,
        event: FailureEvent,
        graph_run: GraphRun,
        correlation_id: str,
        context: contextvars.Context,
        metrics: Optional[PipelineMetrics] = None,
    ):
        self.event = event
        self.correlation_id = correlation_id
        self._graph_run = graph_run
        self._context = context
        self._metrics = metrics
        self._lock = threading.Lock()
        self._artifact: Optional[Artifact] = None
        self._failure: Optional[PipelineFailure] = None

    @property
    def done(self) -> bool:
        return self._graph_run.done

    def cancel(self, reason: str = "pipeline cancelled") -> bool:
        """
        Abandon the run; in-flight backend calls are asked to stop.

        Returns:
            False if the run had already finished.
        """
        cancelled = self._graph_run.cancel(reason)
        if cancelled:
            logger.info(f"[Orchestrator] run {self.correlation_id} cancelled: {reason}")
        return cancelled

    def result(self) -> Artifact:
        """
        Wait for every step and assemble the Artifact.

        Raises:
            PipelineFailure: A step failed or the run was cancelled; the original
                exception is available as .cause and the failed step as .stage.
        """
        try:
            results = self._graph_run.wait()
        except NodeFailedError as e:
            results = None
            error = e
        else:
            error = None

        with self._lock:
            if self._artifact is None and self._failure is None:
                # log under the run's correlation id
                if error is not None:
                    self._failure = self._context.run(self._on_failure, error)
                else:
                    self._artifact = self._context.run(self._on_success, results)

        if self._failure is not None:
            raise self._failure from self._failure.cause
        return self._artifact

    def _on_success(self, results: Dict[str, NodeResult]) -> Artifact:
        artifact = assemble_artifact(results, self._graph_run.total_ms)
        logger.info(
            f"[Orchestrator] Pipeline completed in {artifact.total_ms}ms | "
            f"technicalAnalysis={artifact.technical_analysis.duration_ms}ms "
            f"rootCause={artifact.root_cause.duration_ms}ms "
            f"bugReport={artifact.bug_report.duration_ms}ms "
            f"userStory={artifact.user_story.duration_ms}ms "
            f"severity={artifact.severity.duration_ms}ms | "
            f"level={artifact.severity.level.value}"
        )
        if self._metrics is not None:
            self._metrics.record_pipeline(artifact.total_ms, "success")
        return artifact

    def _on_failure(self, error: NodeFailedError) -> PipelineFailure:
        cause = error.cause
        if error.node is None:
            message = f"Pipeline cancelled: {cause}"
        else:
            message = f"Pipeline failed at {error.node}: {cause}"

        category = classify_error(cause)
        logger.error(
            f"[Orchestrator] {message} | category={category} | after {self._graph_run.total_ms}ms"
        )
        if self._metrics is not None:
            status = "cancelled" if isinstance(cause, CancellationFailure) else "error"
            self._metrics.record_pipeline(self._graph_run.total_ms, status)
        return PipelineFailure(message, cause=cause, stage=error.node)


def assemble_artifact(results: Dict[str, NodeResult], total_ms: int) -> Artifact:
    """Build the Artifact, attaching each step's measured duration."""
    technical_analysis = results[TA]
    root_cause = results[RC]
    bug_report = results[BW]
    user_story = results[SW]
    severity = results[SV]

    return Artifact(
        technical_analysis=AgentResult[str](
            payload=technical_analysis.value, duration_ms=technical_analysis.duration_ms
        ),
        root_cause=AgentResult[str](payload=root_cause.value, duration_ms=root_cause.duration_ms),
        bug_report=bug_report.value.model_copy(update={"duration_ms": bug_report.duration_ms}),
        user_story=user_story.value.model_copy(update={"duration_ms": user_story.duration_ms}),
        severity=severity.value.model_copy(update={"duration_ms": severity.duration_ms}),
        total_ms=total_ms,
    )


class PipelineOrchestrator:
    """
    Runs the agent pipeline for failure events.

    Agents are stateless, so one orchestrator serves concurrent runs on its
    shared worker pool.
    """

    def __init__(
        self,
        technical_analyzer: TechnicalAnalyzerAgent,
        root_cause: RootCauseAgent,
        bug_writer: BugWriterAgent,
        story_writer: StoryWriterAgent,
        severity: SeverityAgent,
        max_workers: int = 8,
        metrics: Optional[PipelineMetrics] = None,
    ):
        """
        Args:
            technical_analyzer, root_cause, bug_writer, story_writer, severity: The five steps
            max_workers: Worker pool size, at least 3 (the graph's maximum concurrency)
            metrics: Optional Prometheus metrics
        """
        if max_workers < MIN_WORKERS:
            raise ValueError(f"max_workers must be at least {MIN_WORKERS}, got {max_workers}")

        self.technical_analyzer = technical_analyzer
        self.root_cause = root_cause
        self.bug_writer = bug_writer
        self.story_writer = story_writer
        self.severity = severity
        self.max_workers = max_workers
        self.metrics = metrics
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="agent")

        logger.info(f"PipelineOrchestrator initialized with {max_workers} workers")

    @classmethod
    def from_config(
        cls,
        config: Config,
        backend: GenerationBackend,
        metrics: Optional[PipelineMetrics] = None,
    ) -> "PipelineOrchestrator":
        """Wire the five agents with their configured models and timeouts."""
        agents = config.agents
        normalizer = ResponseNormalizer(preview_chars=config.pipeline.raw_preview_chars)

        def options(role: AgentRole) -> dict:
            return {
                "model": agents.model_for(role),
                "timeout": agents.timeout_for(role),
                "normalizer": normalizer,
                "metrics": metrics,
            }

        return cls(
            technical_analyzer=TechnicalAnalyzerAgent(
                backend,
                max_stacktrace_chars=config.pipeline.max_stacktrace_chars,
                **options(AgentRole.TECHNICAL_ANALYZER),
            ),
            root_cause=RootCauseAgent(backend, **options(AgentRole.ROOT_CAUSE)),
            bug_writer=BugWriterAgent(backend, **options(AgentRole.BUG_WRITER)),
            story_writer=StoryWriterAgent(backend, **options(AgentRole.STORY_WRITER)),
            severity=SeverityAgent(backend, **options(AgentRole.SEVERITY)),
            max_workers=config.pipeline.max_workers,
            metrics=metrics,
        )

    def build_graph(self, event: FailureEvent) -> TaskGraph:
        """The five-step graph for one event."""
        return TaskGraph([
            TaskNode(TA, lambda up: self.technical_analyzer.analyze(event)),
            TaskNode(RC, lambda up: self.root_cause.analyze(event, up[TA]), depends_on=(TA,)),
            TaskNode(BW, lambda up: self.bug_writer.write(event, up[TA], up[RC]), depends_on=(TA, RC)),
            TaskNode(SW, lambda up: self.story_writer.write(event, up[RC]), depends_on=(RC,)),
            TaskNode(SV, lambda up: self.severity.assess(event, up[TA], up[RC]), depends_on=(TA, RC)),
        ])

    def submit(self, event: FailureEvent, correlation_id: Optional[str] = None) -> PipelineRun:
        """
        Start a run without blocking.

        The run keeps the caller's correlation id when one is set, otherwise a
        new one is generated. The caller's own context is left untouched.
        """
        context = contextvars.copy_context()
        graph = self.build_graph(event)

        def start() -> PipelineRun:
            run_id = LoggingContext.set_correlation_id(correlation_id or LoggingContext.get_correlation_id())
            logger.info(
                f"[Orchestrator] Starting pipeline | source={event.source.value} "
                f"| test={event.test_name or '-'}"
            )
            graph_run = graph.start(self._executor)
            return PipelineRun(event, graph_run, run_id, context, metrics=self.metrics)

        return context.run(start)

    def run(self, event: FailureEvent) -> Artifact:
        """
        Run the pipeline to completion.

        Raises:
            PipelineFailure: Any step failed or the run was interrupted.
        """
        return self.submit(event).result()

    def run_pipeline(self, event: FailureEvent) -> Artifact:
        """Synchronous entry point used by the HTTP layer and the CLI."""
        return self.run(event)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)
        logger.info("PipelineOrchestrator shut down")

    def __enter__(self) -> "PipelineOrchestrator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
