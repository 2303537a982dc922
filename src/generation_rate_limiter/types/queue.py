# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Queue types for the request queue.

This module defines the item wrapper held by the queue while work waits for
admission.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from asyncio import Future


def new_item_id() -> str:
    """Generate a unique queue item identifier."""
    return uuid.uuid4().hex


@dataclass(eq=False)
class QueueItem:
    """
    A unit of work waiting in the request queue.

    Wraps the caller's work function along with the future handed back to
    the caller. The future is resolved by the queue when the work settles.

    Attributes:
        model: Model tag selecting the RPM/concurrency budget
        execute: Zero-argument async callable performing the request
        future: Future resolved with the work's result or exception
        id: Unique identifier, generated at enqueue time
        added_at: Clock reading at enqueue time, used for diagnostics only
        deadline_handle: Timer evicting the item if it waits too long
    """

    model: str
    execute: Callable[[], Awaitable[Any]]
    future: "Future[Any]"
    id: str = field(default_factory=new_item_id)
    added_at: float = 0.0
    deadline_handle: asyncio.TimerHandle | None = field(default=None, repr=False)

    def cancel_deadline(self) -> None:
        """Disarm the deadline timer, if any."""
        if self.deadline_handle is not None:
            self.deadline_handle.cancel()
            self.deadline_handle = None

    def reject(self, error: BaseException) -> bool:
        """
        Reject the caller's future unless it already settled.

        Returns:
            True if the exception was delivered
        """
        self.cancel_deadline()
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True


__all__ = ["QueueItem", "new_item_id"]
