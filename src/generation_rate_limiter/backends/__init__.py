# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Storage backends for key rotation state."""

from typing import TYPE_CHECKING

from .base import BaseKeyStateBackend, HealthCheckResult
from .memory import MemoryKeyStateBackend

if TYPE_CHECKING:
    from .redis import RedisKeyStateBackend

__all__ = [
    "BaseKeyStateBackend",
    "HealthCheckResult",
    "MemoryKeyStateBackend",
    "RedisKeyStateBackend",
]


def __getattr__(name: str) -> type:
    """Import the Redis backend only when it is asked for."""
    if name == "RedisKeyStateBackend":
        from .redis import RedisKeyStateBackend

        return RedisKeyStateBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
