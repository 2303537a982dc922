# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Multi-model request queue with per-model RPM and concurrency limits.

Work submitted with ``enqueue`` waits in a single shared queue until the
model it targets has both RPM quota left in the current window and a free
concurrency slot. A drain task admits whatever is admissible on each pass,
visiting models in configuration order and items in enqueue order within a
model, so a backlog for one model never holds up another.

Everything here runs on one event loop. Admission bookkeeping is plain
synchronous code between awaits, so no locks are needed; the limits are
per process, not global across instances.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ..config import ModelType, RequestQueueConfig, normalize_model
from ..exceptions import (
    QueueClearedError,
    QueueOverflowError,
    QueueTimeoutError,
    RateLimiterError,
    UnknownModelError,
)
from ..observability.metrics import QueueMetrics
from ..types.queue import QueueItem
from ..types.quota import QuotaWindow

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestQueue:
    """
    Rate-limited queue for outbound generation requests.

    Admission consumes one unit of the model's RPM quota and one of its
    concurrency slots. The queue never retries work: a failing ``execute``
    settles its own future and nothing else.

    Attributes:
        config: Queue configuration, including the per-model limits table
        metrics: Prometheus collectors for queue activity

    Example:
        >>> queue = RequestQueue()
        >>> image = await queue.enqueue("nano-banana-pro", lambda: client.generate(prompt))
        >>> queue.get_queue_status()["models"]["nano-banana-pro"]["quota_remaining"]
        19
    """

    def __init__(
        self,
        config: RequestQueueConfig | None = None,
        metrics: QueueMetrics | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the request queue.

        Args:
            config: Queue configuration (defaults to the built-in model table)
            metrics: Metrics collectors (a private registry is used if omitted)
            clock: Monotonic clock in seconds, injectable for tests
        """
        self.config = config or RequestQueueConfig()
        self.metrics = metrics or QueueMetrics()
        self._clock = clock

        self._queue: list[QueueItem] = []
        self._windows: dict[str, QuotaWindow] = {}
        self._running: dict[str, int] = dict.fromkeys(self.config.model_limits, 0)
        self._processing = 0

        # Drain loop state
        self._draining = False
        self._drain_task: asyncio.Task[None] | None = None
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()

        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    # ==========================================================================
    # Public API
    # ==========================================================================

    @property
    def models(self) -> list[str]:
        """Configured model tags, in admission order."""
        return list(self.config.model_limits)

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def processing(self) -> int:
        return self._processing

    def enqueue(
        self,
        model: str | ModelType,
        execute: Callable[[], Awaitable[T]],
        *,
        timeout: float | None = None,
    ) -> "asyncio.Future[T]":
        """
        Submit work for rate-limited execution.

        Must be called from a running event loop. The returned future settles
        with whatever ``execute()`` returns or raises; the queue adds no
        wrapping. Cancelling the future before admission withdraws the item
        without consuming quota.

        Args:
            model: Model tag selecting the limits to apply
            execute: Zero-argument async callable performing the request
            timeout: Optional seconds the item may wait for admission

        Returns:
            Future resolved with the result of ``execute()``

        Raises:
            UnknownModelError: If ``model`` has no configured limits
            QueueOverflowError: If the queue is at ``max_queue_size``
            RateLimiterError: If the queue has been closed
        """
        if self._closed:
            raise RateLimiterError("Request queue is closed")

        model_key = normalize_model(model)
        if model_key not in self.config.model_limits:
            raise UnknownModelError(model_key)
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive")

        max_size = self.config.max_queue_size
        if max_size is not None and len(self._queue) >= max_size:
            raise QueueOverflowError(
                f"Request queue is full ({max_size} waiting)", model=model_key
            )

        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        item = QueueItem(
            model=model_key, execute=execute, future=future, added_at=self._clock()
        )
        if timeout is not None:
            item.deadline_handle = loop.call_later(
                timeout, self._expire_item, item, timeout
            )
        future.add_done_callback(lambda f: self._on_future_done(item, f))

        self._queue.append(item)
        depth = self._waiting_for(model_key)
        self.metrics.record_enqueued(model_key, depth)
        logger.debug(
            f"Task added to queue. Model: {model_key}, Queue size: {len(self._queue)}"
        )

        self._ensure_draining()
        self._wakeup.set()
        return future

    def get_queue_status(self) -> dict[str, Any]:
        """
        Snapshot of the scheduler state.

        Pure read: an expired window is reported as full quota but is not
        reset here.

        Returns:
            Dictionary containing:
            - queue_length: Items waiting for admission
            - processing: Items currently executing
            - draining: Whether the drain loop is active
            - models: Per-model rpm_limit, max_concurrent, quota_remaining,
              in_queue and running
        """
        now = self._clock()
        models: dict[str, dict[str, int]] = {}
        for model, limits in self.config.model_limits.items():
            window = self._windows.get(model)
            quota = (
                limits.rpm_limit
                if window is None
                else window.remaining(limits.rpm_limit, now, self.config.window_seconds)
            )
            models[model] = {
                "rpm_limit": limits.rpm_limit,
                "max_concurrent": limits.max_concurrent,
                "quota_remaining": quota,
                "in_queue": self._waiting_for(model),
                "running": self._running[model],
            }

        return {
            "queue_length": len(self._queue),
            "processing": self._processing,
            "draining": self._draining,
            "models": models,
        }

    def clear_queue(self) -> int:
        """
        Cancel every item still waiting for admission.

        Each pending future rejects with QueueClearedError. Items already
        executing are not touched.

        Returns:
            Number of items cancelled
        """
        pending, self._queue = self._queue, []
        cancelled = 0
        for item in pending:
            if item.reject(QueueClearedError(model=item.model)):
                cancelled += 1
                self.metrics.record_cancelled(item.model, "cleared", 0)

        if cancelled:
            logger.warning(f"Cleared {cancelled} tasks from queue")
        self._wakeup.set()
        return cancelled

    async def wait_idle(self) -> None:
        """Wait until nothing is queued and nothing is executing."""
        while self._queue or self._processing:
            if not self._draining:
                self._ensure_draining()
            await self._idle.wait()

    async def close(self) -> None:
        """
        Stop accepting work and shut the queue down.

        Pending items are cleared, the drain loop is cancelled, and in-flight
        executions are awaited so their futures settle. Safe to call twice.
        """
        self._closed = True
        self.clear_queue()

        if self._drain_task and not self._drain_task.done():
            self._drain_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._drain_task

        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def __aenter__(self) -> "RequestQueue":
        return self

    async def __aexit__(self, exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.close()

    # ==========================================================================
    # Drain loop
    # ==========================================================================

    def _ensure_draining(self) -> None:
        """Start the drain loop unless it is already running."""
        if self._draining:
            return
        self._draining = True
        self._idle.clear()
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        """
        Admit queued items until the queue is empty and nothing is running.

        When a pass admits nothing, sleeps until the earliest window reset of
        a model with pending items (capped at ``max_wait``), or for
        ``idle_backoff`` when only concurrency is in the way. Completions and
        new enqueues cut the sleep short.
        """
        try:
            while self._queue or self._processing:
                self._wakeup.clear()

                if self._admit_ready():
                    # Let the admitted executions start before the next pass
                    await asyncio.sleep(0)
                    continue

                if not self._queue:
                    # Only in-flight work left; a completion or enqueue wakes us
                    await self._wakeup.wait()
                    continue

                await self._sleep(self._next_delay())
        except asyncio.CancelledError:
            logger.debug("Request queue drain loop cancelled")
            raise
        except Exception as e:
            # Items stay queued; the next enqueue or completion restarts the loop
            logger.exception(f"Request queue drain loop failed: {e}")
        finally:
            self._draining = False
            self._idle.set()

    def _admit_ready(self) -> int:
        """
        Run one admission pass over every configured model.

        Returns:
            Number of items admitted
        """
        now = self._clock()
        admitted = 0

        for model, limits in self.config.model_limits.items():
            window = self._window_for(model, now)
            for item in [i for i in self._queue if i.model == model]:
                if item.future.done():
                    # Cancelled by the caller; the done callback has not run yet
                    self._queue.remove(item)
                    continue
                if window.remaining(limits.rpm_limit, now, self.config.window_seconds) <= 0:
                    break
                if self._running[model] >= limits.max_concurrent:
                    break
                self._admit(item, window, now)
                admitted += 1

        return admitted

    def _admit(self, item: QueueItem, window: QuotaWindow, now: float) -> None:
        self._queue.remove(item)
        item.cancel_deadline()

        window.count += 1
        self._processing += 1
        self._running[item.model] += 1

        self.metrics.record_admitted(
            item.model,
            depth=self._waiting_for(item.model),
            running=self._running[item.model],
            waited=now - item.added_at,
        )
        logger.debug(
            f"Admitted {item.model} task {item.id} "
            f"({window.count} this window, {self._running[item.model]} running)"
        )

        task = asyncio.get_running_loop().create_task(self._execute(item))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _execute(self, item: QueueItem) -> None:
        """Run one admitted item and settle its future."""
        succeeded = False
        try:
            result = await item.execute()
        except asyncio.CancelledError:
            item.future.cancel()
            raise
        except Exception as e:
            if not item.future.done():
                item.future.set_exception(e)
        else:
            succeeded = True
            if not item.future.done():
                item.future.set_result(result)
        finally:
            self._processing -= 1
            self._running[item.model] -= 1
            self.metrics.record_settled(
                item.model, self._running[item.model], succeeded
            )
            self._wakeup.set()
            if self._queue and not self._closed:
                self._ensure_draining()

    def _window_for(self, model: str, now: float) -> QuotaWindow:
        """Get the model's quota window, starting a new one if it expired."""
        window = self._windows.get(model)
        if window is None:
            window = QuotaWindow(window_start=now)
            self._windows[model] = window
        else:
            window.roll(now, self.config.window_seconds)
        return window

    def _wait_time(self, model: str, now: float) -> float:
        """Seconds until ``model`` regains RPM quota, 0.0 if it has some."""
        limits = self.config.model_limits[model]
        window = self._windows.get(model)
        if window is None:
            return 0.0
        if window.remaining(limits.rpm_limit, now, self.config.window_seconds) > 0:
            return 0.0
        return (
            window.time_until_reset(now, self.config.window_seconds)
            + self.config.reset_buffer
        )

    def _next_delay(self) -> float:
        now = self._clock()
        pending_models = {item.model for item in self._queue}
        min_wait = min(self._wait_time(model, now) for model in pending_models)

        if min_wait > 0:
            logger.info(f"Waiting {min_wait:.2f}s for rate limit reset...")
            return min(min_wait, self.config.max_wait)
        return self.config.idle_backoff

    async def _sleep(self, delay: float) -> None:
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._wakeup.wait(), timeout=delay)

    # ==========================================================================
    # Item bookkeeping
    # ==========================================================================

    def _waiting_for(self, model: str) -> int:
        return sum(1 for item in self._queue if item.model == model)

    def _remove_pending(self, item: QueueItem) -> bool:
        try:
            self._queue.remove(item)
        except ValueError:
            return False
        return True

    def _expire_item(self, item: QueueItem, timeout: float) -> None:
        """Deadline callback: evict the item if it is still waiting."""
        item.deadline_handle = None
        if not self._remove_pending(item):
            return
        item.reject(
            QueueTimeoutError(
                f"Timed out after {timeout}s waiting for {item.model} quota",
                model=item.model,
                timeout=timeout,
            )
        )
        self.metrics.record_cancelled(item.model, "timeout", self._waiting_for(item.model))
        logger.warning(f"Evicted {item.model} task {item.id} after waiting {timeout}s")
        self._wakeup.set()

    def _on_future_done(self, item: QueueItem, future: "asyncio.Future[Any]") -> None:
        """Withdraw an item whose future the caller cancelled while it waited."""
        if not future.cancelled():
            return
        item.cancel_deadline()
        if self._remove_pending(item):
            self.metrics.record_cancelled(
                item.model, "caller", self._waiting_for(item.model)
            )
            logger.debug(f"Withdrew cancelled {item.model} task {item.id}")
            self._wakeup.set()


__all__ = ["RequestQueue"]
