# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Running a generation request through the queue with key rotation.

This ties the two halves together the way a provider adapter uses them:
pick a key, run the request under the model's limits, and on a quota
error put that key in cooldown and try again with the next one.
"""

import logging
from collections.abc import Awaitable, Callable
from functools import partial
from typing import TypeVar

from .classification import is_quota_error as default_is_quota_error
from .config import ModelType
from .exceptions import AllKeysExhaustedError, NoCredentialsError
from .keys.store import KeyRotationStore
from .queue.request_queue import RequestQueue

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_key_rotation(
    store: KeyRotationStore,
    queue: RequestQueue,
    provider: str,
    model: ModelType | str,
    request_func: Callable[[str], Awaitable[T]],
    *,
    timeout: float | None = None,
    is_quota_error: Callable[[BaseException], bool] = default_is_quota_error,
) -> T:
    """
    Execute ``request_func(key)`` under the model's limits, rotating keys.

    Each attempt is a separate queue item, so a retry after rotation waits
    for quota like any other request.

    Args:
        store: Key rotation store for ``provider``
        queue: Request queue holding ``model``'s limits
        provider: Provider whose keys to use
        model: Model the request counts against
        request_func: Async callable taking the API key
        timeout: Per-attempt queue deadline in seconds
        is_quota_error: Predicate deciding whether a failure should rotate

    Returns:
        Whatever ``request_func`` returns

    Raises:
        NoCredentialsError: If the provider has no keys configured
        AllKeysExhaustedError: If every key hit its quota
        Exception: Any non-quota error from ``request_func`` or the queue
    """
    selection = await store.get_current_key(provider)
    if selection is None:
        raise NoCredentialsError(provider)
    key_count = len(await store.credentials.get_keys(provider))

    rotations = 0
    while True:
        try:
            return await queue.enqueue(
                model, partial(request_func, selection.key), timeout=timeout
            )
        except Exception as e:
            if not is_quota_error(e):
                raise
            logger.warning(f"{provider} key {selection.index + 1} hit quota: {e}")
            has_backup = await store.report_quota_failure(provider, selection.index)
            rotations += 1
            if not has_backup or rotations >= key_count:
                raise AllKeysExhaustedError(provider, key_count) from e

        selection = await store.get_current_key(provider)
        if selection is None:
            raise NoCredentialsError(provider)
        logger.info(f"Retrying {provider} request with key {selection.index + 1}")


__all__ = ["call_with_key_rotation"]
