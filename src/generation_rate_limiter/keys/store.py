# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
API key rotation with a shared, persisted failure list.

KeyRotationStore picks a usable credential for a provider and records which
credentials have hit their quota, so that every process skips an exhausted
key until its cooldown has elapsed. There is no cache: each call re-reads
the provider's row from the backend and, when something changed, writes it
back conditionally on the version it read.

Each key index is either ACTIVE or FAILED(since). A quota report moves it to
FAILED; the first read after the cooldown moves it back to ACTIVE. There is
no background timer.
"""

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace

from ..backends.base import BaseKeyStateBackend
from ..config import KeyRotationConfig
from ..exceptions import ConcurrentUpdateError, RateLimiterError
from ..observability.metrics import KeyRotationMetrics
from ..types.keys import KeyRotationState, KeySelection
from ..types.quota import is_expired
from .credentials import CredentialProvider, StaticCredentials

logger = logging.getLogger(__name__)


class KeyRotationStore:
    """
    Selects API keys and tracks quota-exhausted keys across processes.

    Attributes:
        backend: Storage for the per-provider state row
        credentials: Source of the ordered key list per provider
        config: Cooldown and write-retry settings
        metrics: Prometheus collectors for failures, recoveries and rotations

    Example:
        >>> store = KeyRotationStore(
        ...     RedisKeyStateBackend(), {"gemini": ["key-a", "key-b", "key-c"]}
        ... )
        >>> selection = await store.get_current_key("gemini")
        >>> if response.status == 429:
        ...     has_backup = await store.report_quota_failure("gemini", selection.index)
    """

    def __init__(
        self,
        backend: BaseKeyStateBackend,
        credentials: CredentialProvider | Mapping[str, Sequence[str]],
        config: KeyRotationConfig | None = None,
        metrics: KeyRotationMetrics | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the store.

        Args:
            backend: Storage backend for rotation rows
            credentials: A CredentialProvider, or a mapping of provider name
                to its ordered list of keys
            config: Rotation configuration
            metrics: Metrics collectors (a private registry is used if omitted)
            clock: Wall clock in epoch seconds; failure times are persisted
                so this must agree across processes
        """
        self.backend = backend
        if isinstance(credentials, Mapping):
            credentials = StaticCredentials(credentials)
        self.credentials: CredentialProvider = credentials
        self.config = config or KeyRotationConfig()
        self.metrics = metrics or KeyRotationMetrics()
        self._clock = clock

    # ==========================================================================
    # Public API
    # ==========================================================================

    async def get_current_key(self, provider: str) -> KeySelection | None:
        """
        Return the credential to use for the next request.

        Expires failures whose cooldown has elapsed, then scans forward from
        the current pointer for the first key not in cooldown, persisting
        whatever changed. If every key is in cooldown, the first key is
        returned anyway so the caller gets a definitive error from upstream.

        Never raises for backend trouble: if the row cannot be read or
        written, the error is logged and the first key is returned.

        Args:
            provider: Provider name (e.g. "gemini")

        Returns:
            The selected key and its index, or None if the provider has no keys
        """
        keys = await self.credentials.get_keys(provider)
        if not keys:
            return None
        key_count = len(keys)
        now_ms = self._now_ms()

        def plan(state: KeyRotationState) -> KeyRotationState:
            cleaned = self._expire_failures(state, key_count, now_ms)
            index = self._next_available(
                cleaned, key_count, start=cleaned.current_key_index % key_count
            )
            if index is None:
                return cleaned
            return replace(cleaned, current_key_index=index)

        try:
            before, after = await self._commit(provider, plan)
        except RateLimiterError as e:
            logger.error(
                f"Key state for {provider} unavailable, falling back to key 1: {e}"
            )
            return KeySelection(key=keys[0], index=0)

        self._log_recoveries(provider, before, after, key_count)

        if self._next_available(after, key_count, start=0) is None:
            logger.warning(f"All {key_count} {provider} keys exhausted!")
            self.metrics.record_exhausted(provider)
            return KeySelection(key=keys[0], index=0)

        index = after.current_key_index
        if index != before.current_key_index:
            logger.info(f"Switched {provider} to key {index + 1}/{key_count}")
            self.metrics.record_rotation(provider)
        return KeySelection(key=keys[index], index=index)

    async def report_quota_failure(self, provider: str, index: int) -> bool:
        """
        Record that the key at ``index`` is out of quota.

        Puts the key in cooldown and moves the current pointer to the next
        key (wrapping) that is not in cooldown. Reporting a key that is
        already in cooldown changes nothing, including its failure time.

        The caller is responsible for deciding that the failure really was a
        quota error; this method does not inspect anything.

        Args:
            provider: Provider name
            index: Index of the failing key, as returned by get_current_key

        Returns:
            True if another usable key exists, False if every key is now
            in cooldown

        Raises:
            ValueError: If ``index`` is outside the configured key list
            BackendOperationError: If the state row cannot be updated
        """
        keys = await self.credentials.get_keys(provider)
        key_count = len(keys)
        if not 0 <= index < key_count:
            raise ValueError(
                f"Key index {index} out of range for {provider} ({key_count} keys)"
            )
        now_ms = self._now_ms()
        newly_failed = False

        def plan(state: KeyRotationState) -> KeyRotationState:
            nonlocal newly_failed
            cleaned = self._expire_failures(state, key_count, now_ms)
            newly_failed = not cleaned.is_failed(index)
            if not newly_failed:
                return cleaned
            failed = cleaned.with_failure(index, now_ms)
            next_index = self._next_available(
                failed, key_count, start=index + 1, skip=index
            )
            return replace(
                failed, current_key_index=next_index if next_index is not None else 0
            )

        before, after = await self._commit(provider, plan)
        self._log_recoveries(provider, before, after, key_count)

        has_backup = (
            self._next_available(after, key_count, start=index + 1, skip=index)
            is not None
        )
        if newly_failed:
            logger.info(f"{provider} key {index + 1}/{key_count} marked as FAILED")
            self.metrics.record_failure(provider)
            if has_backup:
                logger.info(
                    f"Switched {provider} to key {after.current_key_index + 1}/{key_count}"
                )
                self.metrics.record_rotation(provider)
            else:
                logger.error(f"All {key_count} {provider} keys exhausted!")
                self.metrics.record_exhausted(provider)
        return has_backup

    async def get_state(self, provider: str) -> KeyRotationState:
        """
        Read the rotation row for a provider, creating it if absent.

        Nothing is expired or rewritten; this is a raw snapshot.
        """
        return await self._load_or_create(provider)

    async def reset(self, provider: str) -> None:
        """Clear every failure and point the provider back at its first key."""
        await self._commit(provider, lambda state: KeyRotationState(version=state.version))
        logger.info(f"Reset key rotation state for {provider}")

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def _load_or_create(self, provider: str) -> KeyRotationState:
        state = await self.backend.load(provider)
        if state is None:
            state = await self.backend.create(provider, KeyRotationState())
            logger.debug(f"Initialized key rotation state for {provider}")
        return state

    async def _commit(
        self,
        provider: str,
        plan: Callable[[KeyRotationState], KeyRotationState],
    ) -> tuple[KeyRotationState, KeyRotationState]:
        """
        Read the row, apply ``plan`` and write the result if it differs.

        The write is conditional on the version read; on a conflict the row
        is re-read and ``plan`` re-applied.

        Returns:
            The state read and the state now stored

        Raises:
            ConcurrentUpdateError: If every attempt hit a conflict
        """
        attempts = self.config.max_write_retries
        for attempt in range(1, attempts + 1):
            current = await self._load_or_create(provider)
            desired = plan(current)
            if desired == current:
                return current, current
            if await self.backend.save(provider, desired, current.version):
                return current, replace(desired, version=current.version + 1)
            logger.debug(
                f"Key state for {provider} changed underneath us "
                f"(attempt {attempt}/{attempts}), retrying"
            )
        raise ConcurrentUpdateError(provider, attempts)

    def _expire_failures(
        self, state: KeyRotationState, key_count: int, now_ms: int
    ) -> KeyRotationState:
        """
        Drop failures whose cooldown has elapsed.

        Also drops entries that can no longer be honoured: indices beyond the
        key list, failures without a timestamp, and stray timestamps.
        """
        recovery_ms = self.config.recovery_seconds * 1000
        drop = set(state.failed_at) - set(state.failed_keys)
        for index in state.failed_keys:
            failed_at = state.failed_at.get(index)
            if (
                index >= key_count
                or failed_at is None
                or is_expired(failed_at, now_ms, recovery_ms)
            ):
                drop.add(index)
        return state.without_failures(drop) if drop else state

    @staticmethod
    def _next_available(
        state: KeyRotationState,
        key_count: int,
        start: int,
        skip: int | None = None,
    ) -> int | None:
        """First index at or after ``start`` (wrapping) not in cooldown."""
        for offset in range(key_count):
            index = (start + offset) % key_count
            if index != skip and not state.is_failed(index):
                return index
        return None

    def _log_recoveries(
        self,
        provider: str,
        before: KeyRotationState,
        after: KeyRotationState,
        key_count: int,
    ) -> None:
        recovered = [
            i for i in before.failed_keys if i < key_count and not after.is_failed(i)
        ]
        for index in recovered:
            logger.info(
                f"{provider} key {index + 1}/{key_count} recovered after cooldown"
            )
        self.metrics.record_recoveries(provider, len(recovered))


__all__ = ["KeyRotationStore"]
