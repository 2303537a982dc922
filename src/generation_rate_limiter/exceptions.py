# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Exception classes for the generation rate limiter.

This module defines the exception hierarchy used throughout the library.
All exceptions inherit from RateLimiterError, making it easy to catch
every limiter-related failure with a single except clause.

Errors raised by the caller's own work functions are never wrapped in
these classes; they reach the caller unchanged.
"""


class RateLimiterError(Exception):
    """Base exception for all rate limiter errors.

    Example:
        try:
            result = await queue.enqueue("nano-banana-pro", generate)
        except RateLimiterError as e:
            logger.error(f"Rate limiter error: {e}")
    """

    pass


class ConfigurationError(RateLimiterError):
    """Raised when configuration is invalid or incomplete."""

    pass


class UnknownModelError(ConfigurationError):
    """Raised when work is submitted for a model with no configured limits.

    Attributes:
        model: The model tag that was not found in the limits table.
    """

    def __init__(self, model: str):
        super().__init__(f"No rate limits configured for model: {model}")
        self.model = model


class QueueError(RateLimiterError):
    """Base class for errors raised for items that never started executing.

    Attributes:
        model: The model tag of the affected item, when known.
    """

    def __init__(self, message: str, model: str | None = None):
        super().__init__(message)
        self.model = model


class QueueClearedError(QueueError):
    """Raised for every pending item when the queue is cleared.

    This is a cancellation, not a transient failure: callers should not
    resubmit through the same queue without their own backoff.

    Example:
        try:
            await queue.enqueue("nano-banana", generate)
        except QueueClearedError:
            return None  # request was cancelled by an operator
    """

    def __init__(self, message: str = "Queue cleared", model: str | None = None):
        super().__init__(message, model)


class QueueTimeoutError(QueueError):
    """Raised when an item waits in the queue past its deadline.

    Attributes:
        timeout: The deadline in seconds that was exceeded.
    """

    def __init__(
        self,
        message: str = "Timed out waiting for admission",
        model: str | None = None,
        timeout: float | None = None,
    ):
        super().__init__(message, model)
        self.timeout = timeout


class QueueOverflowError(QueueError):
    """Raised when the queue is at its configured maximum size.

    Example:
        try:
            future = queue.enqueue("nano-banana", generate)
        except QueueOverflowError:
            raise HTTPException(status_code=503, detail="Service overloaded")
    """

    pass


class KeyRotationError(RateLimiterError):
    """Base class for credential selection failures.

    Attributes:
        provider: The logical provider name (e.g. "gemini").
    """

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class NoCredentialsError(KeyRotationError):
    """Raised when a provider has zero configured credentials."""

    def __init__(self, provider: str):
        super().__init__(f"No API keys configured for provider: {provider}", provider)


class AllKeysExhaustedError(KeyRotationError):
    """Raised when every credential of a provider is in its cooldown.

    Not retryable until an operator adds keys or a cooldown elapses.
    """

    def __init__(self, provider: str, key_count: int | None = None):
        super().__init__(f"All API keys exhausted for provider: {provider}", provider)
        self.key_count = key_count


class BackendConnectionError(RateLimiterError):
    """Raised when connection to the key-state backend fails."""

    pass


class BackendOperationError(RateLimiterError):
    """Raised when a key-state backend operation fails."""

    pass


class ConcurrentUpdateError(BackendOperationError):
    """Raised when a conditional state write keeps losing to other writers.

    Attributes:
        provider: The provider whose state row was contended.
        attempts: Number of write attempts made.
    """

    def __init__(self, provider: str, attempts: int):
        super().__init__(
            f"Gave up updating key state for {provider} after {attempts} conflicting writes"
        )
        self.provider = provider
        self.attempts = attempts


__all__ = [
    "AllKeysExhaustedError",
    "BackendConnectionError",
    "BackendOperationError",
    "ConcurrentUpdateError",
    "ConfigurationError",
    "KeyRotationError",
    "NoCredentialsError",
    "QueueClearedError",
    "QueueError",
    "QueueOverflowError",
    "QueueTimeoutError",
    "RateLimiterError",
    "UnknownModelError",
]
