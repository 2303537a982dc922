# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
RedisKeyStateBackend for key rotation state

This module provides a Redis backend so every process (or serverless
invocation) sees the same key rotation row.

Key Features:
- One hash per provider: ``{namespace}:{provider}``
- Fields ``currentKeyIndex``, ``failedKeys`` (JSON), ``failedAt`` (JSON), ``version``
- WATCH/MULTI transactions for create-if-absent and version-checked saves
"""

import logging
import os
from dataclasses import replace
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import (
    ConnectionError,
    RedisError,
    TimeoutError,
    WatchError,
)

from ..exceptions import BackendConnectionError, BackendOperationError
from ..types.keys import KeyRotationState
from .base import BaseKeyStateBackend, HealthCheckResult

logger = logging.getLogger(__name__)


class RedisKeyStateBackend(BaseKeyStateBackend):
    """
    A shared Redis backend for key rotation rows.

    Rows never expire: a failed key's cooldown is enforced by its recorded
    timestamp, not by a Redis TTL.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        redis_client: Any | None = None,
        namespace: str = "key_rotation",
        max_connections: int = 10,
    ) -> None:
        """
        Initialize the Redis backend.

        Args:
            redis_url: Redis connection URL. If not provided, falls back to the
                REDIS_URL environment variable, then to "redis://localhost:6379".
            redis_client: Optional pre-configured client. It must be created
                with ``decode_responses=True``.
            namespace: Prefix for row keys
            max_connections: Maximum connections in the owned pool

        Environment Variables:
            REDIS_URL: Default Redis connection URL when redis_url is not provided.
        """
        super().__init__(namespace)
        self.redis_url = (
            redis_url or os.environ.get("REDIS_URL") or "redis://localhost:6379"
        )
        self.max_connections = max_connections

        self._redis: Any | None = redis_client
        self._owned_redis = redis_client is None

    def _row_key(self, provider: str) -> str:
        return f"{self.namespace}:{provider}"

    async def _ensure_connected(self) -> Any:
        """Return the client, creating the owned connection pool on first use."""
        if self._redis is None:
            try:
                self._redis = Redis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    max_connections=self.max_connections,
                )
            except (ValueError, RedisError) as e:
                raise BackendConnectionError(
                    f"Could not create Redis client for {self.redis_url}: {e}"
                ) from e
            logger.debug(f"Created Redis client for {self.redis_url}")
        return self._redis

    def _translate(self, action: str, provider: str, error: RedisError) -> Exception:
        logger.error(f"Redis error {action} key state for {provider}: {error}")
        if isinstance(error, (ConnectionError, TimeoutError)):
            return BackendConnectionError(f"Redis unavailable: {error}")
        return BackendOperationError(f"Redis error {action} {provider}: {error}")

    @staticmethod
    def _decode(provider: str, record: dict[str, Any]) -> KeyRotationState:
        try:
            return KeyRotationState.from_record(record)
        except ValueError as e:
            raise BackendOperationError(
                f"Corrupt key state row for {provider}: {e}"
            ) from e

    async def load(self, provider: str) -> KeyRotationState | None:
        redis_client = await self._ensure_connected()
        try:
            record = await redis_client.hgetall(self._row_key(provider))
        except RedisError as e:
            raise self._translate("loading", provider, e) from e
        if not record:
            return None
        return self._decode(provider, record)

    async def create(self, provider: str, state: KeyRotationState) -> KeyRotationState:
        redis_client = await self._ensure_connected()
        row_key = self._row_key(provider)
        try:
            async with redis_client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(row_key)
                    existing = await pipe.hgetall(row_key)
                    if existing:
                        return self._decode(provider, existing)
                    pipe.multi()
                    pipe.hset(row_key, mapping=state.to_record())
                    await pipe.execute()
                    logger.debug(f"Created key state row {row_key}")
                    return state
                except WatchError:
                    logger.debug(f"Lost create race for {row_key}, reading winner")
        except RedisError as e:
            raise self._translate("creating", provider, e) from e

        winner = await self.load(provider)
        if winner is None:
            raise BackendOperationError(
                f"Key state row for {provider} vanished during creation"
            )
        return winner

    async def save(
        self, provider: str, state: KeyRotationState, expected_version: int
    ) -> bool:
        redis_client = await self._ensure_connected()
        row_key = self._row_key(provider)
        record = replace(state, version=expected_version + 1).to_record()
        try:
            async with redis_client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(row_key)
                    stored_version = await pipe.hget(row_key, "version")
                    if stored_version is None or int(stored_version) != expected_version:
                        logger.debug(
                            f"Version conflict for {provider}: expected "
                            f"{expected_version}, found {stored_version}"
                        )
                        return False
                    pipe.multi()
                    pipe.hset(row_key, mapping=record)
                    await pipe.execute()
                    return True
                except WatchError:
                    logger.debug(f"Concurrent write to {row_key} detected")
                    return False
        except RedisError as e:
            raise self._translate("saving", provider, e) from e

    async def delete(self, provider: str) -> None:
        redis_client = await self._ensure_connected()
        try:
            await redis_client.delete(self._row_key(provider))
        except RedisError as e:
            raise self._translate("deleting", provider, e) from e

    async def health_check(self) -> HealthCheckResult:
        """Perform health check on the backend."""
        try:
            redis_client = await self._ensure_connected()
            await redis_client.ping()
            return HealthCheckResult(
                healthy=True,
                backend_type="redis",
                namespace=self.namespace,
                metadata={"redis_url": self.redis_url},
            )
        except Exception as e:
            return HealthCheckResult(
                healthy=False,
                backend_type="redis",
                namespace=self.namespace,
                error=str(e),
            )

    async def cleanup(self) -> None:
        """Close the connection pool if this backend created it."""
        if self._redis is not None and self._owned_redis:
            try:
                await self._redis.aclose()
            except RedisError as e:
                logger.error(f"Error during cleanup: {e}")
            finally:
                self._redis = None


__all__ = ["RedisKeyStateBackend"]
