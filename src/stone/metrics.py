"""Prometheus metrics for Stone.

Metrics are exposed at the `/metrics` endpoint in Prometheus format.

Metrics Defined:
- stone_webhooks_total: Counter of routed webhook deliveries
- stone_pipeline_runs_total: Counter of test pipeline runs
- stone_stage_duration_seconds: Histogram of test stage runtimes
- stone_issue_test_runs_total: Counter of issue-level test runs

Components take an optional StoneMetrics and skip recording without one,
so unit tests never touch the default registry.
"""

import logging
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


logger = logging.getLogger(__name__)


# From a quick unit suite to a slow end-to-end suite
DEFAULT_DURATION_BUCKETS = (
    1.0,
    5.0,
    15.0,
    30.0,
    60.0,
    120.0,
    300.0,
    600.0,
    1800.0,
)


class StoneMetrics:
    """Container for all Stone Prometheus metrics.

    Metrics:
        webhooks_total: Routed deliveries.
            Labels: event (the part before the first '.'), status

        pipeline_runs_total: Test pipeline runs.
            Labels: result (success/failure)

        stage_duration_seconds: Time spent per test stage.
            Labels: stage

        issue_test_runs_total: Tests run for a ready-for-tests issue.
            Labels: result (success/failure/error)

    Example:
        >>> metrics = StoneMetrics(registry=CollectorRegistry())
        >>> metrics.record_pipeline_run(success=True)
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or REGISTRY

        self.webhooks_total = Counter(
            "stone_webhooks_total",
            "Total number of webhook deliveries routed",
            labelnames=["event", "status"],
            registry=self.registry,
        )

        self.pipeline_runs_total = Counter(
            "stone_pipeline_runs_total",
            "Total number of test pipeline runs",
            labelnames=["result"],
            registry=self.registry,
        )

        self.stage_duration_seconds = Histogram(
            "stone_stage_duration_seconds",
            "Time spent running a test stage in seconds",
            labelnames=["stage"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

        self.issue_test_runs_total = Counter(
            "stone_issue_test_runs_total",
            "Total number of issue test runs",
            labelnames=["result"],
            registry=self.registry,
        )

    def record_webhook(self, event_type: str, status: str) -> None:
        # Only the event family is kept to bound label cardinality
        event = event_type.split(".", 1)[0] or "unknown"
        self.webhooks_total.labels(event=event, status=status).inc()

    def record_pipeline_run(self, success: bool) -> None:
        result = "success" if success else "failure"
        self.pipeline_runs_total.labels(result=result).inc()

    def record_stage_duration(self, stage: str, duration_seconds: float) -> None:
        self.stage_duration_seconds.labels(stage=stage).observe(duration_seconds)

    def record_issue_test_run(self, result: str) -> None:
        """Record an issue test run.

        Args:
            result: "success", "failure", or "error" when the test command
                could not be started.
        """
        self.issue_test_runs_total.labels(result=result).inc()


_default_metrics: Optional[StoneMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> StoneMetrics:
    """Get the metrics instance for the default registry, or a new one.

    A custom registry always gets a fresh instance; the default registry
    gets a process-wide singleton since metric names register only once.
    """
    global _default_metrics

    if registry is not None:
        return StoneMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = StoneMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Render metrics in Prometheus text format for the /metrics endpoint."""
    return generate_latest(registry or REGISTRY)
