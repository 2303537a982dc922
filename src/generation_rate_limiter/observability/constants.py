# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metric name constants following Prometheus naming conventions.

All metric names use the `generation_rl_` prefix.

Naming Conventions:
    - Counter metrics end with `_total`
    - Histogram metrics for time end with `_seconds`
    - Gauges use present-tense descriptive names

Label Best Practices:
    Only categorical labels are used:
    - `model` - Model tag (nano-banana, nano-banana-pro, ...)
    - `provider` - Credential provider (gemini, seedream)
    - `reason` - Cancellation reason (cleared, timeout, caller)

    NEVER use item ids or key material as labels.
"""


# =============================================================================
# Global Prefix
# =============================================================================

METRIC_PREFIX = "generation_rl"
"""Prefix for all Prometheus metrics in this library."""


# =============================================================================
# Queue Metrics (queue/request_queue.py)
# =============================================================================

REQUESTS_ENQUEUED_TOTAL = f"{METRIC_PREFIX}_requests_enqueued_total"
"""Total items accepted into the queue."""

REQUESTS_ADMITTED_TOTAL = f"{METRIC_PREFIX}_requests_admitted_total"
"""Total items admitted for execution (one unit of RPM quota each)."""

REQUESTS_COMPLETED_TOTAL = f"{METRIC_PREFIX}_requests_completed_total"
"""Total executions that returned a result."""

REQUESTS_FAILED_TOTAL = f"{METRIC_PREFIX}_requests_failed_total"
"""Total executions that raised."""

REQUESTS_CANCELLED_TOTAL = f"{METRIC_PREFIX}_requests_cancelled_total"
"""Total items removed before admission (cleared, timed out, cancelled)."""

QUEUE_DEPTH = f"{METRIC_PREFIX}_queue_depth"
"""Items currently waiting for admission."""

ACTIVE_REQUESTS = f"{METRIC_PREFIX}_active_requests"
"""Items currently executing."""

QUEUE_WAIT_SECONDS = f"{METRIC_PREFIX}_queue_wait_seconds"
"""Time between enqueue and admission."""


# =============================================================================
# Key Rotation Metrics (keys/store.py)
# =============================================================================

KEY_FAILURES_TOTAL = f"{METRIC_PREFIX}_key_failures_total"
"""Keys newly marked as quota-exhausted."""

KEY_RECOVERIES_TOTAL = f"{METRIC_PREFIX}_key_recoveries_total"
"""Keys returned to service after their cooldown."""

KEY_ROTATIONS_TOTAL = f"{METRIC_PREFIX}_key_rotations_total"
"""Changes of the current key pointer."""

KEYS_EXHAUSTED_TOTAL = f"{METRIC_PREFIX}_keys_exhausted_total"
"""Lookups or failure reports that found no usable key."""


# =============================================================================
# Buckets
# =============================================================================

WAIT_BUCKETS = (0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0)
"""Histogram buckets for queue wait time, spanning one to several windows."""


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
]
