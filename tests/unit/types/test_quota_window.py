"""Tests for quota window accounting and the shared expiry predicate."""

import pytest

from generation_rate_limiter.types.quota import QuotaWindow, is_expired


class TestIsExpired:
    def test_boundary_is_inclusive(self):
        assert is_expired(100.0, 160.0, 60.0)

    def test_before_boundary(self):
        assert not is_expired(100.0, 159.999, 60.0)

    def test_millisecond_units(self):
        day_ms = 86_400_000
        assert is_expired(0, day_ms, day_ms)
        assert not is_expired(0, day_ms - 60_000, day_ms)


class TestQuotaWindow:
    def test_remaining_counts_down(self):
        window = QuotaWindow(window_start=0.0, count=3)
        assert window.remaining(5, now=10.0, window_seconds=60.0) == 2

    def test_remaining_never_negative(self):
        window = QuotaWindow(window_start=0.0, count=7)
        assert window.remaining(5, now=10.0, window_seconds=60.0) == 0

    def test_expired_window_reports_full_quota_without_resetting(self):
        window = QuotaWindow(window_start=0.0, count=5)
        assert window.remaining(5, now=60.0, window_seconds=60.0) == 5
        assert window.count == 5
        assert window.window_start == 0.0

    def test_roll_resets_expired_window(self):
        window = QuotaWindow(window_start=0.0, count=5)
        window.roll(now=61.0, window_seconds=60.0)
        assert window.window_start == 61.0
        assert window.count == 0

    def test_roll_keeps_live_window(self):
        window = QuotaWindow(window_start=0.0, count=5)
        window.roll(now=59.0, window_seconds=60.0)
        assert window.window_start == 0.0
        assert window.count == 5

    @pytest.mark.parametrize(
        "now, expected",
        [(0.0, 60.0), (45.0, 15.0), (60.0, 0.0), (75.0, 0.0)],
    )
    def test_time_until_reset(self, now, expected):
        window = QuotaWindow(window_start=0.0)
        assert window.time_until_reset(now, 60.0) == pytest.approx(expected)
