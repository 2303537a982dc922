# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures for the generation rate limiter test suite."""

import pytest

from generation_rate_limiter.backends.memory import MemoryKeyStateBackend
from generation_rate_limiter.config import KeyRotationConfig
from generation_rate_limiter.keys.store import KeyRotationStore
from generation_rate_limiter.observability.metrics import KeyRotationMetrics


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


DAY = 24 * 60 * 60


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_backend():
    return MemoryKeyStateBackend(namespace="test")


@pytest.fixture
def key_metrics():
    return KeyRotationMetrics()


@pytest.fixture
def store(memory_backend, key_metrics, clock):
    """Store over three gemini keys with a controllable wall clock."""
    return KeyRotationStore(
        memory_backend,
        {"gemini": ["key-a", "key-b", "key-c"]},
        config=KeyRotationConfig(),
        metrics=key_metrics,
        clock=clock,
    )
