"""
Observability Metrics - Prometheus metrics for the agent pipeline

Each PipelineMetrics owns its CollectorRegistry so several pipelines (and
tests) can coexist in one process.
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

logger = logging.getLogger(__name__)


class PipelineMetrics:
    """
    Prometheus metrics of pipeline runs.

    Responsibilities:
    1. Count agent executions by outcome
    2. Track agent and pipeline latency
    3. Count normalizer fallbacks
    """

    def __init__(self, namespace: str = "storywriter", registry: Optional[CollectorRegistry] = None):
        """
        Args:
            namespace: Prefix of every metric name
            registry: Registry to register into (a private one by default)
        """
        self.namespace = namespace
        self.registry = registry or CollectorRegistry()

        self.agent_executions = Counter(
            f"{namespace}_agent_executions_total",
            "Total agent step executions",
            ["agent", "status"],
            registry=self.registry,
        )
        self.agent_duration = Histogram(
            f"{namespace}_agent_duration_seconds",
            "Duration of one agent step",
            ["agent"],
            buckets=(0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
            registry=self.registry,
        )
        self.normalizer_fallbacks = Counter(
            f"{namespace}_normalizer_fallbacks_total",
            "Generated responses replaced by a fallback record",
            ["agent"],
            registry=self.registry,
        )
        self.pipeline_runs = Counter(
            f"{namespace}_pipeline_runs_total",
            "Total pipeline runs",
            ["status"],
            registry=self.registry,
        )
        self.pipeline_duration = Histogram(
            f"{namespace}_pipeline_duration_seconds",
            "Duration of a full pipeline run",
            buckets=(1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
            registry=self.registry,
        )

    def record_agent_execution(self, agent: str, duration_ms: int, status: str = "success") -> None:
        self.agent_executions.labels(agent=agent, status=status).inc()
        self.agent_duration.labels(agent=agent).observe(duration_ms / 1000.0)

    def record_fallback(self, agent: str) -> None:
        self.normalizer_fallbacks.labels(agent=agent).inc()

    def record_pipeline(self, duration_ms: int, status: str = "success") -> None:
        self.pipeline_runs.labels(status=status).inc()
        self.pipeline_duration.observe(duration_ms / 1000.0)

    def export(self) -> bytes:
        """Prometheus text exposition of this registry."""
        return generate_latest(self.registry)
