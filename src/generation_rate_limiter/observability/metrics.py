# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Prometheus metrics for the request queue and key rotation store.

Each metrics object registers its collectors on a CollectorRegistry. By
default a private registry is created per object so that several queues
(or a fresh queue per test) never collide on metric names. Pass
``prometheus_client.REGISTRY`` to expose the metrics through the default
exporter:

    >>> from prometheus_client import REGISTRY, start_http_server
    >>> queue = RequestQueue(metrics=QueueMetrics(registry=REGISTRY))
    >>> start_http_server(9090)
"""

from __future__ import annotations

import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from .constants import (
    ACTIVE_REQUESTS,
    KEY_FAILURES_TOTAL,
    KEY_RECOVERIES_TOTAL,
    KEY_ROTATIONS_TOTAL,
    KEYS_EXHAUSTED_TOTAL,
    QUEUE_DEPTH,
    QUEUE_WAIT_SECONDS,
    REQUESTS_ADMITTED_TOTAL,
    REQUESTS_CANCELLED_TOTAL,
    REQUESTS_COMPLETED_TOTAL,
    REQUESTS_ENQUEUED_TOTAL,
    REQUESTS_FAILED_TOTAL,
    WAIT_BUCKETS,
)

logger = logging.getLogger(__name__)


class QueueMetrics:
    """
    Counters and gauges describing request queue activity, labelled by model.

    Example:
        >>> metrics = QueueMetrics()
        >>> metrics.record_enqueued("nano-banana", depth=3)
        >>> metrics.registry.get_sample_value(
        ...     "generation_rl_requests_enqueued_total", {"model": "nano-banana"}
        ... )
        1.0
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        self.enqueued = Counter(
            REQUESTS_ENQUEUED_TOTAL,
            "Total items accepted into the queue",
            ["model"],
            registry=self.registry,
        )
        self.admitted = Counter(
            REQUESTS_ADMITTED_TOTAL,
            "Total items admitted for execution",
            ["model"],
            registry=self.registry,
        )
        self.completed = Counter(
            REQUESTS_COMPLETED_TOTAL,
            "Total executions that returned a result",
            ["model"],
            registry=self.registry,
        )
        self.failed = Counter(
            REQUESTS_FAILED_TOTAL,
            "Total executions that raised",
            ["model"],
            registry=self.registry,
        )
        self.cancelled = Counter(
            REQUESTS_CANCELLED_TOTAL,
            "Total items removed before admission",
            ["model", "reason"],
            registry=self.registry,
        )
        self.queue_depth = Gauge(
            QUEUE_DEPTH,
            "Items currently waiting for admission",
            ["model"],
            registry=self.registry,
        )
        self.active = Gauge(
            ACTIVE_REQUESTS,
            "Items currently executing",
            ["model"],
            registry=self.registry,
        )
        self.wait_seconds = Histogram(
            QUEUE_WAIT_SECONDS,
            "Time between enqueue and admission",
            ["model"],
            buckets=WAIT_BUCKETS,
            registry=self.registry,
        )

    def record_enqueued(self, model: str, depth: int) -> None:
        self.enqueued.labels(model=model).inc()
        self.queue_depth.labels(model=model).set(depth)

    def record_admitted(
        self, model: str, depth: int, running: int, waited: float
    ) -> None:
        self.admitted.labels(model=model).inc()
        self.queue_depth.labels(model=model).set(depth)
        self.active.labels(model=model).set(running)
        self.wait_seconds.labels(model=model).observe(max(0.0, waited))

    def record_settled(self, model: str, running: int, succeeded: bool) -> None:
        if succeeded:
            self.completed.labels(model=model).inc()
        else:
            self.failed.labels(model=model).inc()
        self.active.labels(model=model).set(running)

    def record_cancelled(self, model: str, reason: str, depth: int) -> None:
        self.cancelled.labels(model=model, reason=reason).inc()
        self.queue_depth.labels(model=model).set(depth)


class KeyRotationMetrics:
    """Counters describing key failures, recoveries and rotations per provider."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        self.failures = Counter(
            KEY_FAILURES_TOTAL,
            "Keys newly marked as quota-exhausted",
            ["provider"],
            registry=self.registry,
        )
        self.recoveries = Counter(
            KEY_RECOVERIES_TOTAL,
            "Keys returned to service after cooldown",
            ["provider"],
            registry=self.registry,
        )
        self.rotations = Counter(
            KEY_ROTATIONS_TOTAL,
            "Changes of the current key pointer",
            ["provider"],
            registry=self.registry,
        )
        self.exhausted = Counter(
            KEYS_EXHAUSTED_TOTAL,
            "Lookups or failure reports that found no usable key",
            ["provider"],
            registry=self.registry,
        )

    def record_failure(self, provider: str) -> None:
        self.failures.labels(provider=provider).inc()

    def record_recoveries(self, provider: str, count: int) -> None:
        if count > 0:
            self.recoveries.labels(provider=provider).inc(count)

    def record_rotation(self, provider: str) -> None:
        self.rotations.labels(provider=provider).inc()

    def record_exhausted(self, provider: str) -> None:
        self.exhausted.labels(provider=provider).inc()


__all__ = ["KeyRotationMetrics", "QueueMetrics"]
