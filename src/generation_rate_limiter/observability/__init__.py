# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Observability and metrics for the Generation Rate Limiter.

Classes:
    QueueMetrics: Prometheus collectors for request queue activity.
    KeyRotationMetrics: Prometheus collectors for API key rotation.

Constants:
    All metric name constants from the constants module.
"""

from .constants import (
    ACTIVE_REQUESTS,
    KEY_FAILURES_TOTAL,
    KEY_RECOVERIES_TOTAL,
    KEY_ROTATIONS_TOTAL,
    KEYS_EXHAUSTED_TOTAL,
    METRIC_PREFIX,
    QUEUE_DEPTH,
    QUEUE_WAIT_SECONDS,
    REQUESTS_ADMITTED_TOTAL,
    REQUESTS_CANCELLED_TOTAL,
    REQUESTS_COMPLETED_TOTAL,
    REQUESTS_ENQUEUED_TOTAL,
    REQUESTS_FAILED_TOTAL,
    WAIT_BUCKETS,
)
from .metrics import KeyRotationMetrics, QueueMetrics

__all__ = [
    "ACTIVE_REQUESTS",
    "KEYS_EXHAUSTED_TOTAL",
    "KEY_FAILURES_TOTAL",
    "KEY_RECOVERIES_TOTAL",
    "KEY_ROTATIONS_TOTAL",
    "METRIC_PREFIX",
    "QUEUE_DEPTH",
    "QUEUE_WAIT_SECONDS",
    "REQUESTS_ADMITTED_TOTAL",
    "REQUESTS_CANCELLED_TOTAL",
    "REQUESTS_COMPLETED_TOTAL",
    "REQUESTS_ENQUEUED_TOTAL",
    "REQUESTS_FAILED_TOTAL",
    "WAIT_BUCKETS",
    "KeyRotationMetrics",
    "QueueMetrics",
]
