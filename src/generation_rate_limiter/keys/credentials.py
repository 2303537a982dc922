# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Credential sources for key rotation.

A credential provider returns the ordered list of API keys configured for a
logical provider name. Indices into that list are what KeyRotationStore
persists, so the order must be stable between calls.
"""

import logging
import os
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class CredentialProvider(Protocol):
    """Protocol for anything that can list the API keys of a provider."""

    async def get_keys(self, provider: str) -> list[str]:
        """
        Return the ordered API keys for ``provider``.

        Returns:
            The configured keys; an empty list if none are configured
        """
        ...


class StaticCredentials:
    """Keys supplied directly, e.g. from application settings.

    Example:
        >>> creds = StaticCredentials({"gemini": ["key-a", "key-b"]})
        >>> await creds.get_keys("gemini")
        ['key-a', 'key-b']
    """

    def __init__(self, keys: Mapping[str, Sequence[str]]) -> None:
        self._keys = {provider: list(values) for provider, values in keys.items()}

    async def get_keys(self, provider: str) -> list[str]:
        return list(self._keys.get(provider, ()))


class EnvironmentCredentials:
    """
    Keys read from ``<PROVIDER>_API_KEYS`` environment variables.

    The variable holds a separator-delimited list (``GEMINI_API_KEYS=k1,k2``).
    Blank entries are ignored. Lists are cached for ``cache_ttl`` seconds so
    that a hot path does not re-parse the environment on every lookup.

    Attributes:
        suffix: Appended to the upper-cased provider name to form the variable
        separator: Delimiter between keys
        cache_ttl: Seconds a parsed list stays cached
    """

    def __init__(
        self,
        suffix: str = "_API_KEYS",
        separator: str = ",",
        cache_ttl: float = 60.0,
        environ: Mapping[str, str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if cache_ttl < 0:
            raise ValueError("cache_ttl must not be negative")
        self.suffix = suffix
        self.separator = separator
        self.cache_ttl = cache_ttl
        self._environ = environ if environ is not None else os.environ
        self._clock = clock
        self._cache: dict[str, tuple[list[str], float]] = {}

    def variable_name(self, provider: str) -> str:
        return f"{provider.upper().replace('-', '_')}{self.suffix}"

    async def get_keys(self, provider: str) -> list[str]:
        now = self._clock()
        cached = self._cache.get(provider)
        if cached is not None and now - cached[1] < self.cache_ttl:
            return list(cached[0])

        raw = self._environ.get(self.variable_name(provider), "")
        keys = [part.strip() for part in raw.split(self.separator) if part.strip()]
        if keys:
            self._cache[provider] = (keys, now)
            logger.debug(f"Loaded {len(keys)} API keys for {provider} from environment")
        return list(keys)

    def clear_cache(self, provider: str | None = None) -> None:
        """Forget cached key lists, for one provider or all of them."""
        if provider is None:
            self._cache.clear()
        else:
            self._cache.pop(provider, None)


__all__ = ["CredentialProvider", "EnvironmentCredentials", "StaticCredentials"]
