"""
Unit tests for KeyRotationStore.

Tests cover:
- Selection and rotation after quota failures
- 24h cooldown expiry, observed lazily on read
- Idempotent failure reports
- Version-checked writes and retry on conflict
- Degraded behaviour when the backend is unavailable
"""

import logging
from unittest.mock import AsyncMock

import pytest

from generation_rate_limiter.backends.memory import MemoryKeyStateBackend
from generation_rate_limiter.config import KeyRotationConfig
from generation_rate_limiter.exceptions import (
    BackendConnectionError,
    ConcurrentUpdateError,
)
from generation_rate_limiter.keys.credentials import StaticCredentials
from generation_rate_limiter.keys.store import KeyRotationStore
from generation_rate_limiter.types.keys import KeyRotationState

DAY = 24 * 60 * 60


def sample(metrics, name, provider="gemini"):
    return metrics.registry.get_sample_value(name, {"provider": provider}) or 0.0


class TestGetCurrentKey:
    @pytest.mark.asyncio
    async def test_fresh_state_selects_first_key(self, store, memory_backend):
        selection = await store.get_current_key("gemini")
        assert selection.key == "key-a"
        assert selection.index == 0
        assert await memory_backend.load("gemini") == KeyRotationState()

    @pytest.mark.asyncio
    async def test_no_keys_returns_none(self, memory_backend):
        store = KeyRotationStore(memory_backend, {"gemini": []})
        assert await store.get_current_key("gemini") is None
        assert await store.get_current_key("unknown") is None
        assert await memory_backend.load("gemini") is None

    @pytest.mark.asyncio
    async def test_accepts_credential_provider(self, memory_backend):
        store = KeyRotationStore(memory_backend, StaticCredentials({"seedream": ["s1"]}))
        selection = await store.get_current_key("seedream")
        assert selection.key == "s1"

    @pytest.mark.asyncio
    async def test_stored_index_beyond_list_wraps(self, store, memory_backend):
        await memory_backend.create("gemini", KeyRotationState(current_key_index=4))
        selection = await store.get_current_key("gemini")
        assert selection.index == 1
        assert (await memory_backend.load("gemini")).current_key_index == 1

    @pytest.mark.asyncio
    async def test_skips_failed_current_key(self, store, memory_backend, clock):
        now_ms = int(clock() * 1000)
        await memory_backend.create(
            "gemini",
            KeyRotationState(current_key_index=0).with_failure(0, now_ms),
        )
        selection = await store.get_current_key("gemini")
        assert selection.index == 1
        assert (await memory_backend.load("gemini")).current_key_index == 1

    @pytest.mark.asyncio
    async def test_unchanged_state_not_rewritten(self, store, memory_backend):
        await store.get_current_key("gemini")
        await store.get_current_key("gemini")
        assert (await memory_backend.load("gemini")).version == 0

    @pytest.mark.asyncio
    async def test_stale_entries_dropped(self, memory_backend, clock):
        store = KeyRotationStore(memory_backend, {"gemini": ["a", "b"]}, clock=clock)
        await memory_backend.create(
            "gemini",
            KeyRotationState(failed_keys=(0, 5), failed_at={5: int(clock() * 1000), 9: 1}),
        )
        selection = await store.get_current_key("gemini")
        assert selection.index == 0
        state = await memory_backend.load("gemini")
        assert state.failed_keys == ()
        assert state.failed_at == {}


class TestRotationRoundTrip:
    @pytest.mark.asyncio
    async def test_failure_moves_to_next_key(self, store):
        assert await store.report_quota_failure("gemini", 0) is True
        selection = await store.get_current_key("gemini")
        assert selection.index == 1
        assert selection.key == "key-b"

    @pytest.mark.asyncio
    async def test_skips_already_failed_backup(self, store):
        await store.report_quota_failure("gemini", 1)
        await store.report_quota_failure("gemini", 0)
        assert (await store.get_current_key("gemini")).index == 2

    @pytest.mark.asyncio
    async def test_report_wraps_around(self, store):
        await store.report_quota_failure("gemini", 2)
        state = await store.get_state("gemini")
        assert state.current_key_index == 0

    @pytest.mark.asyncio
    async def test_all_keys_exhausted(self, store, key_metrics, caplog):
        assert await store.report_quota_failure("gemini", 0) is True
        assert await store.report_quota_failure("gemini", 1) is True
        assert await store.report_quota_failure("gemini", 2) is False

        state = await store.get_state("gemini")
        assert state.current_key_index == 0
        assert set(state.failed_keys) == {0, 1, 2}

        with caplog.at_level(logging.WARNING, logger="generation_rate_limiter.keys.store"):
            selection = await store.get_current_key("gemini")
        assert selection.index == 0
        assert selection.key == "key-a"
        assert "exhausted" in caplog.text
        # One from the last report, one from the lookup
        assert sample(key_metrics, "generation_rl_keys_exhausted_total") == 2

    @pytest.mark.asyncio
    async def test_out_of_range_index(self, store):
        with pytest.raises(ValueError):
            await store.report_quota_failure("gemini", 3)
        with pytest.raises(ValueError):
            await store.report_quota_failure("gemini", -1)

    @pytest.mark.asyncio
    async def test_metrics(self, store, key_metrics):
        await store.report_quota_failure("gemini", 0)
        await store.get_current_key("gemini")

        assert sample(key_metrics, "generation_rl_key_failures_total") == 1
        assert sample(key_metrics, "generation_rl_key_rotations_total") == 1


class TestCooldown:
    @pytest.mark.asyncio
    async def test_still_failed_just_before_cooldown(
        self, store, memory_backend, clock
    ):
        await memory_backend.create(
            "gemini", KeyRotationState().with_failure(0, int(clock() * 1000))
        )
        clock.advance(DAY - 60)

        assert (await store.get_current_key("gemini")).index == 1
        assert (await store.get_state("gemini")).is_failed(0)

    @pytest.mark.asyncio
    async def test_recovered_after_cooldown(self, store, clock, key_metrics, caplog):
        await store.report_quota_failure("gemini", 0)
        await store.report_quota_failure("gemini", 1)
        await store.report_quota_failure("gemini", 2)
        clock.advance(DAY + 0.001)

        with caplog.at_level(logging.INFO, logger="generation_rate_limiter.keys.store"):
            selection = await store.get_current_key("gemini")

        assert selection.index == 0
        state = await store.get_state("gemini")
        assert state.failed_keys == ()
        assert state.failed_at == {}
        assert "recovered" in caplog.text
        assert sample(key_metrics, "generation_rl_key_recoveries_total") == 3

    @pytest.mark.asyncio
    async def test_cooldown_boundary_is_inclusive(self, store, clock):
        await store.report_quota_failure("gemini", 1)
        clock.advance(DAY)
        state = await store.get_state("gemini")
        assert state.is_failed(1)

        await store.get_current_key("gemini")
        assert not (await store.get_state("gemini")).is_failed(1)

    @pytest.mark.asyncio
    async def test_only_expired_failures_recover(self, store, clock):
        await store.report_quota_failure("gemini", 0)
        clock.advance(DAY / 2)
        await store.report_quota_failure("gemini", 1)
        clock.advance(DAY / 2)

        selection = await store.get_current_key("gemini")
        state = await store.get_state("gemini")
        assert state.failed_keys == (1,)
        assert selection.index == 2

    @pytest.mark.asyncio
    async def test_custom_recovery_period(self, memory_backend, clock):
        store = KeyRotationStore(
            memory_backend,
            {"gemini": ["a", "b"]},
            config=KeyRotationConfig(recovery_seconds=60),
            clock=clock,
        )
        await store.report_quota_failure("gemini", 0)
        await store.report_quota_failure("gemini", 1)
        clock.advance(60)
        assert (await store.get_current_key("gemini")).index == 0
        assert (await store.get_state("gemini")).failed_keys == ()


class TestIdempotentReports:
    @pytest.mark.asyncio
    async def test_repeat_report_keeps_timestamp(self, store, clock, key_metrics):
        first = await store.report_quota_failure("gemini", 0)
        failed_at = (await store.get_state("gemini")).failed_at[0]
        version = (await store.get_state("gemini")).version

        clock.advance(3600)
        second = await store.report_quota_failure("gemini", 0)

        state = await store.get_state("gemini")
        assert first is second is True
        assert state.failed_at[0] == failed_at
        assert state.version == version
        assert sample(key_metrics, "generation_rl_key_failures_total") == 1

    @pytest.mark.asyncio
    async def test_repeat_report_when_exhausted(self, store):
        for index in range(3):
            await store.report_quota_failure("gemini", index)
        assert await store.report_quota_failure("gemini", 1) is False

    @pytest.mark.asyncio
    async def test_report_after_cooldown_restarts_it(self, store, clock):
        await store.report_quota_failure("gemini", 0)
        clock.advance(DAY + 1)
        await store.report_quota_failure("gemini", 0)

        state = await store.get_state("gemini")
        assert state.failed_at[0] == int(clock() * 1000)


class TestConcurrentUpdates:
    @pytest.mark.asyncio
    async def test_retries_after_conflict(self, store, memory_backend, clock):
        original_save = memory_backend.save
        calls = []

        async def racing_save(provider, state, expected_version):
            calls.append(expected_version)
            if len(calls) == 1:
                # Another process fails key 1 between our read and write
                current = await memory_backend.load(provider)
                await original_save(
                    provider,
                    current.with_failure(1, int(clock() * 1000)),
                    current.version,
                )
            return await original_save(provider, state, expected_version)

        await memory_backend.create("gemini", KeyRotationState())
        memory_backend.save = racing_save

        assert await store.report_quota_failure("gemini", 0) is True

        state = await memory_backend.load("gemini")
        assert set(state.failed_keys) == {0, 1}
        assert state.current_key_index == 2
        assert calls == [0, 1]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, memory_backend):
        store = KeyRotationStore(
            memory_backend,
            {"gemini": ["a", "b"]},
            config=KeyRotationConfig(max_write_retries=3),
        )
        memory_backend.save = AsyncMock(return_value=False)

        with pytest.raises(ConcurrentUpdateError) as exc_info:
            await store.report_quota_failure("gemini", 0)
        assert exc_info.value.attempts == 3
        assert memory_backend.save.await_count == 3


class TestBackendFailures:
    @pytest.mark.asyncio
    async def test_get_current_key_degrades_to_first_key(self, caplog):
        backend = MemoryKeyStateBackend()
        backend.load = AsyncMock(side_effect=BackendConnectionError("down"))
        store = KeyRotationStore(backend, {"gemini": ["a", "b"]})

        with caplog.at_level(logging.ERROR, logger="generation_rate_limiter.keys.store"):
            selection = await store.get_current_key("gemini")

        assert selection.index == 0
        assert selection.key == "a"
        assert "unavailable" in caplog.text

    @pytest.mark.asyncio
    async def test_report_propagates_backend_errors(self):
        backend = MemoryKeyStateBackend()
        backend.load = AsyncMock(side_effect=BackendConnectionError("down"))
        store = KeyRotationStore(backend, {"gemini": ["a", "b"]})

        with pytest.raises(BackendConnectionError):
            await store.report_quota_failure("gemini", 0)


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_clears_failures(self, store):
        await store.report_quota_failure("gemini", 0)
        await store.report_quota_failure("gemini", 1)

        await store.reset("gemini")

        state = await store.get_state("gemini")
        assert state.failed_keys == ()
        assert state.current_key_index == 0
        assert (await store.get_current_key("gemini")).index == 0

    @pytest.mark.asyncio
    async def test_providers_are_independent(self, memory_backend, clock):
        store = KeyRotationStore(
            memory_backend, {"gemini": ["g1", "g2"], "seedream": ["s1", "s2"]}, clock=clock
        )
        await store.report_quota_failure("gemini", 0)
        assert (await store.get_current_key("seedream")).index == 0
        assert (await store.get_current_key("gemini")).index == 1
