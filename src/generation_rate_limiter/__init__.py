# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Generation Rate Limiter - Request pacing and key rotation for image generation.

This library keeps calls to image-generation providers inside their per-model
limits and spreads them over a pool of API keys.

Key Features:
    - Per-model request queue with RPM windows and concurrency slots
    - FIFO admission within a model, configuration-order sweep across models
    - Per-item queue deadlines, cancellation and queue clearing
    - API key rotation with a 24-hour cooldown for quota-exhausted keys
    - Shared key state in memory or Redis, with version-checked writes
    - Prometheus metrics for queue depth, waits and key failures

Quick Start:
    >>> from generation_rate_limiter import (
    ...     KeyRotationStore, MemoryKeyStateBackend, RequestQueue,
    ...     call_with_key_rotation,
    ... )
    >>>
    >>> store = KeyRotationStore(MemoryKeyStateBackend(), {"gemini": keys})
    >>> async with RequestQueue() as queue:
    ...     image = await call_with_key_rotation(
    ...         store, queue, "gemini", "nano-banana", generate_image
    ...     )

Main Exports:
    - RequestQueue: Per-model admission queue
    - KeyRotationStore: Credential selection and failure tracking
    - MemoryKeyStateBackend, RedisKeyStateBackend: Key state storage
    - RequestQueueConfig, KeyRotationConfig, ModelLimits: Configuration
    - call_with_key_rotation: Queue plus rotation in one call

Note: RedisKeyStateBackend requires the 'redis' extra. Install with:
    pip install generation-rate-limiter[redis]

Version: 1.0.0
"""

__version__ = "1.0.0"

from typing import TYPE_CHECKING

from .backends import (
    BaseKeyStateBackend,
    HealthCheckResult,
    MemoryKeyStateBackend,
)
from .classification import is_quota_error, is_retryable_error
from .config import (
    KeyRotationConfig,
    ModelLimits,
    ModelType,
    RequestQueueConfig,
    default_model_limits,
)
from .exceptions import (
    AllKeysExhaustedError,
    BackendConnectionError,
    BackendOperationError,
    ConcurrentUpdateError,
    ConfigurationError,
    KeyRotationError,
    NoCredentialsError,
    QueueClearedError,
    QueueError,
    QueueOverflowError,
    QueueTimeoutError,
    RateLimiterError,
    UnknownModelError,
)
from .keys import (
    CredentialProvider,
    EnvironmentCredentials,
    KeyRotationStore,
    StaticCredentials,
)
from .observability import KeyRotationMetrics, QueueMetrics
from .queue import RequestQueue
from .rotation import call_with_key_rotation
from .types import KeyRotationState, KeySelection

# Lazy import for optional redis backend
if TYPE_CHECKING:
    from .backends import RedisKeyStateBackend

__all__ = [
    "AllKeysExhaustedError",
    "BackendConnectionError",
    "BackendOperationError",
    # Backends
    "BaseKeyStateBackend",
    "ConcurrentUpdateError",
    "ConfigurationError",
    # Keys
    "CredentialProvider",
    "EnvironmentCredentials",
    "HealthCheckResult",
    "KeyRotationConfig",
    "KeyRotationError",
    "KeyRotationMetrics",
    "KeyRotationState",
    "KeyRotationStore",
    "KeySelection",
    "MemoryKeyStateBackend",
    # Configuration
    "ModelLimits",
    "ModelType",
    "NoCredentialsError",
    "QueueClearedError",
    "QueueError",
    # Observability
    "QueueMetrics",
    "QueueOverflowError",
    "QueueTimeoutError",
    # Exceptions
    "RateLimiterError",
    "RedisKeyStateBackend",  # Lazy loaded - requires redis extra
    # Queue
    "RequestQueue",
    "RequestQueueConfig",
    "StaticCredentials",
    "UnknownModelError",
    "call_with_key_rotation",
    "default_model_limits",
    "is_quota_error",
    "is_retryable_error",
]


def __getattr__(name: str) -> type:
    """Lazy import for optional redis backend."""
    if name == "RedisKeyStateBackend":
        from .backends import RedisKeyStateBackend

        return RedisKeyStateBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
