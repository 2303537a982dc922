# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Upstream error classification.

Helpers that decide whether a provider failure means "this key is out of
quota" (rotate to the next key) or "this might work if tried again" (the
caller's own retry policy).
"""

from typing import Any

from .exceptions import RateLimiterError

QUOTA_STATUS_CODES = frozenset({429, 503})
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

QUOTA_MESSAGE_MARKERS = ("resource_exhausted", "quota")
RETRYABLE_MESSAGE_MARKERS = (
    "overloaded",
    "unavailable",
    "timeout",
    "temporarily",
    "try again",
    "aborted",
    "fetch failed",
    "headers timeout",
)


def _status_of(error: BaseException) -> int | None:
    """Pull an HTTP status from common client exception shapes."""
    for candidate in (error, getattr(error, "response", None)):
        if candidate is None:
            continue
        for attr in ("status_code", "status"):
            value: Any = getattr(candidate, attr, None)
            if isinstance(value, int):
                return value
    return None


def is_quota_error(error: BaseException) -> bool:
    """
    Check whether an upstream failure means the key hit its quota.

    True for HTTP 429 and 503 (both rotate the key), for exception classes
    whose name mentions rate limiting, and for messages carrying
    ``RESOURCE_EXHAUSTED`` or ``quota``. Errors raised by this package itself
    are never quota errors.
    """
    if isinstance(error, RateLimiterError):
        return False
    status = _status_of(error)
    if status is not None and status in QUOTA_STATUS_CODES:
        return True
    if "ratelimit" in type(error).__name__.lower():
        return True
    message = str(error).lower()
    return any(marker in message for marker in QUOTA_MESSAGE_MARKERS)


def is_retryable_error(status: int | None, message: str = "") -> bool:
    """Check whether a failed call is worth retrying with the same key."""
    if status is not None and status in RETRYABLE_STATUS_CODES:
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in RETRYABLE_MESSAGE_MARKERS)


__all__ = [
    "QUOTA_STATUS_CODES",
    "RETRYABLE_STATUS_CODES",
    "is_quota_error",
    "is_retryable_error",
]
