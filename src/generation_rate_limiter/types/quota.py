# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Quota window types for per-model RPM accounting.

Windows are fixed-length and reset lazily: nothing runs in the background,
a window is only considered expired when someone looks at it.
"""

from dataclasses import dataclass


def is_expired(timestamp: float, now: float, ttl: float) -> bool:
    """
    Check whether something stamped at ``timestamp`` has outlived ``ttl``.

    Shared by the quota window (60s) and the key cooldown (24h).

    Args:
        timestamp: When the window started or the failure was recorded
        now: Current time, in the same unit as ``timestamp``
        ttl: Lifetime, in the same unit as ``timestamp``

    Returns:
        True once ``now - timestamp >= ttl``
    """
    return now - timestamp >= ttl


@dataclass
class QuotaWindow:
    """
    Admission count for one model inside the current quota window.

    Attributes:
        window_start: Clock reading when the window began
        count: Admissions recorded since window_start
    """

    window_start: float
    count: int = 0

    def remaining(self, limit: int, now: float, window_seconds: float) -> int:
        """Quota left in the window, treating an expired window as fresh."""
        if is_expired(self.window_start, now, window_seconds):
            return limit
        return max(0, limit - self.count)

    def roll(self, now: float, window_seconds: float) -> None:
        """Start a new window if the current one has expired."""
        if is_expired(self.window_start, now, window_seconds):
            self.window_start = now
            self.count = 0

    def time_until_reset(self, now: float, window_seconds: float) -> float:
        """Seconds until the window expires, 0.0 if it already has."""
        elapsed = now - self.window_start
        if elapsed >= window_seconds:
            return 0.0
        return window_seconds - elapsed


__all__ = ["QuotaWindow", "is_expired"]
