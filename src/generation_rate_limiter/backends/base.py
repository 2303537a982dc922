# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Base Backend for key rotation state

This module provides the BaseKeyStateBackend abstract class that defines the
storage contract behind KeyRotationStore: one row per provider that can be
read, created if absent, and conditionally updated.

Conditional updates compare the row's ``version`` counter; a backend must
apply a save only if the stored version still equals the version the caller
read, and must bump the version when it does.
"""

import abc
import logging
from dataclasses import dataclass
from typing import Any

from ..types.keys import KeyRotationState

logger = logging.getLogger(__name__)


@dataclass
class HealthCheckResult:
    """
    Structured health check result for backend monitoring.

    Attributes:
        healthy: Whether the backend is operational
        backend_type: Type of backend (e.g., 'redis', 'memory')
        namespace: Backend namespace
        error: Error message if unhealthy
        metadata: Additional backend-specific information
    """

    healthy: bool
    backend_type: str
    namespace: str
    error: str | None = None
    metadata: dict[str, Any] | None = None


class BaseKeyStateBackend(abc.ABC):
    """
    Abstract storage for per-provider key rotation rows.

    Implementations must make ``create`` and ``save`` atomic with respect to
    other writers of the same row; nothing else is required of them.
    """

    def __init__(self, namespace: str = "key_rotation"):
        """
        Initialize the backend with a namespace for isolation.

        Args:
            namespace: Namespace for isolating rows across deployments
        """
        self.namespace = namespace

    @abc.abstractmethod
    async def load(self, provider: str) -> KeyRotationState | None:
        """
        Read the row for a provider.

        Args:
            provider: Provider name (e.g. "gemini")

        Returns:
            The stored state, or None if no row exists
        """
        pass

    @abc.abstractmethod
    async def create(self, provider: str, state: KeyRotationState) -> KeyRotationState:
        """
        Create the row for a provider if it does not exist yet.

        Args:
            provider: Provider name
            state: Initial state to store

        Returns:
            The stored row: ``state`` if this call created it, otherwise the
            row another writer created first
        """
        pass

    @abc.abstractmethod
    async def save(
        self, provider: str, state: KeyRotationState, expected_version: int
    ) -> bool:
        """
        Replace the row if its version is still ``expected_version``.

        The stored row receives version ``expected_version + 1``; the version
        carried by ``state`` is ignored.

        Args:
            provider: Provider name
            state: New state
            expected_version: Version the caller's read was based on

        Returns:
            True if the row was written, False on a version conflict
        """
        pass

    @abc.abstractmethod
    async def delete(self, provider: str) -> None:
        """Remove the row for a provider, if any."""
        pass

    @abc.abstractmethod
    async def health_check(self) -> HealthCheckResult:
        """Report whether the backend is reachable."""
        pass

    async def cleanup(self) -> None:  # noqa: B027
        """Release backend resources. The default implementation is a no-op."""
        pass

    async def __aenter__(self) -> "BaseKeyStateBackend":
        return self

    async def __aexit__(self, exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.cleanup()


__all__ = ["BaseKeyStateBackend", "HealthCheckResult"]
