# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
MemoryKeyStateBackend for key rotation state

This module provides an in-memory backend that doesn't require Redis.
Perfect for testing, development, and single-process applications.
"""

import asyncio
import logging
from dataclasses import replace

from ..types.keys import KeyRotationState
from .base import BaseKeyStateBackend, HealthCheckResult

logger = logging.getLogger(__name__)


class MemoryKeyStateBackend(BaseKeyStateBackend):
    """
    An in-memory backend for key rotation rows.

    Rows are stored in record form so the serialization path is the same as
    for persistent backends.

    Note:
        This backend is NOT suitable for:
        - Multi-process applications
        - Serverless deployments where each invocation is a new process
    """

    def __init__(self, namespace: str = "key_rotation_memory") -> None:
        super().__init__(namespace)
        self._rows: dict[str, dict[str, object]] = {}
        self._lock = asyncio.Lock()
        logger.debug(f"Initialized MemoryKeyStateBackend with namespace '{namespace}'")

    async def load(self, provider: str) -> KeyRotationState | None:
        async with self._lock:
            record = self._rows.get(provider)
            if record is None:
                return None
            return KeyRotationState.from_record(record)

    async def create(self, provider: str, state: KeyRotationState) -> KeyRotationState:
        async with self._lock:
            existing = self._rows.get(provider)
            if existing is not None:
                return KeyRotationState.from_record(existing)
            self._rows[provider] = state.to_record()
            return state

    async def save(
        self, provider: str, state: KeyRotationState, expected_version: int
    ) -> bool:
        async with self._lock:
            existing = self._rows.get(provider)
            stored_version = (
                KeyRotationState.from_record(existing).version
                if existing is not None
                else None
            )
            if stored_version != expected_version:
                logger.debug(
                    f"Version conflict for {provider}: expected {expected_version}, "
                    f"found {stored_version}"
                )
                return False
            self._rows[provider] = replace(
                state, version=expected_version + 1
            ).to_record()
            return True

    async def delete(self, provider: str) -> None:
        async with self._lock:
            self._rows.pop(provider, None)

    async def health_check(self) -> HealthCheckResult:
        return HealthCheckResult(
            healthy=True,
            backend_type="memory",
            namespace=self.namespace,
            metadata={"rows": len(self._rows)},
        )


__all__ = ["MemoryKeyStateBackend"]
