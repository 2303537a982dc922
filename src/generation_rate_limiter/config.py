# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Configuration for the Generation Rate Limiter

This module provides configuration classes for the request queue and the
API key rotation store, plus the default per-model limits table.
"""

from dataclasses import dataclass, field
from enum import Enum


class ModelType(str, Enum):
    """Image generation models with a built-in limits entry.

    - NANO_BANANA: Gemini 2.5 Flash image model (fast tier).
    - NANO_BANANA_PRO: Gemini 3 Pro image model (pro tier).
    - SEEDREAM: Bytedance Seedream 4.5.
    - GLM_IMAGE: Zhipu GLM image model.

    Other model tags can be used by adding them to
    ``RequestQueueConfig.model_limits``.
    """

    NANO_BANANA = "nano-banana"
    NANO_BANANA_PRO = "nano-banana-pro"
    SEEDREAM = "seedream-4.5"
    GLM_IMAGE = "glm-image"


@dataclass(frozen=True)
class ModelLimits:
    """Requests-per-minute budget and concurrency ceiling for one model."""

    rpm_limit: int
    """Admissions allowed per quota window."""

    max_concurrent: int
    """Maximum number of in-flight executions."""

    def __post_init__(self) -> None:
        if self.rpm_limit < 1:
            raise ValueError("rpm_limit must be at least 1")
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")


def default_model_limits() -> dict[str, ModelLimits]:
    """Return a fresh copy of the built-in limits table."""
    return {
        ModelType.NANO_BANANA.value: ModelLimits(rpm_limit=500, max_concurrent=50),
        ModelType.NANO_BANANA_PRO.value: ModelLimits(rpm_limit=20, max_concurrent=5),
        ModelType.SEEDREAM.value: ModelLimits(rpm_limit=60, max_concurrent=10),
        ModelType.GLM_IMAGE.value: ModelLimits(rpm_limit=60, max_concurrent=10),
    }


@dataclass
class RequestQueueConfig:
    """
    Configuration for the in-process request queue.

    The order of ``model_limits`` is the order in which models are visited
    on every admission pass.
    """

    model_limits: dict[str, ModelLimits] = field(default_factory=default_model_limits)
    """Per-model limits, keyed by model tag."""

    window_seconds: float = 60.0
    """Length of the quota window in seconds."""

    max_wait: float = 5.0
    """Upper bound for a single drain-loop sleep in seconds."""

    idle_backoff: float = 0.1
    """Sleep used when nothing is admissible but no window reset is pending."""

    reset_buffer: float = 0.1
    """Extra time added to a computed window reset before retrying."""

    max_queue_size: int | None = None
    """Maximum number of waiting items; None means unbounded."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.model_limits:
            raise ValueError("model_limits must configure at least one model")
        # Normalise enum keys so lookups by plain string work
        self.model_limits = {
            normalize_model(model): limits for model, limits in self.model_limits.items()
        }
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if self.max_wait <= 0:
            raise ValueError("max_wait must be positive")
        if self.idle_backoff <= 0:
            raise ValueError("idle_backoff must be positive")
        if self.reset_buffer < 0:
            raise ValueError("reset_buffer must not be negative")
        if self.max_queue_size is not None and self.max_queue_size < 1:
            raise ValueError("max_queue_size must be at least 1")


@dataclass
class KeyRotationConfig:
    """
    Configuration for API key rotation.

    Controls the cooldown of exhausted keys and how hard the store retries
    conditional writes when several processes update the same row.
    """

    recovery_seconds: float = 86400.0
    """Cooldown after which a failed key is eligible again (24h)."""

    max_write_retries: int = 5
    """Conditional write attempts before giving up on a contended row."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.recovery_seconds <= 0:
            raise ValueError("recovery_seconds must be positive")
        if self.max_write_retries < 1:
            raise ValueError("max_write_retries must be at least 1")


def normalize_model(model: "str | ModelType") -> str:
    """Return the plain string tag for a model given as enum or string."""
    return model.value if isinstance(model, ModelType) else str(model)


__all__ = [
    "KeyRotationConfig",
    "ModelLimits",
    "ModelType",
    "RequestQueueConfig",
    "default_model_limits",
    "normalize_model",
]
