"""Tests for the queue item wrapper."""

import asyncio

import pytest

from generation_rate_limiter.exceptions import QueueClearedError
from generation_rate_limiter.types.queue import QueueItem, new_item_id


async def _work():
    return "done"


def test_new_item_id_unique():
    assert len({new_item_id() for _ in range(100)}) == 100


class TestQueueItem:
    @pytest.mark.asyncio
    async def test_reject_pending_future(self):
        future = asyncio.get_running_loop().create_future()
        item = QueueItem(model="nano-banana", execute=_work, future=future)

        assert item.reject(QueueClearedError()) is True
        with pytest.raises(QueueClearedError):
            await future

    @pytest.mark.asyncio
    async def test_reject_settled_future_is_noop(self):
        future = asyncio.get_running_loop().create_future()
        future.set_result("early")
        item = QueueItem(model="nano-banana", execute=_work, future=future)

        assert item.reject(QueueClearedError()) is False
        assert future.result() == "early"

    @pytest.mark.asyncio
    async def test_reject_disarms_deadline(self):
        loop = asyncio.get_running_loop()
        fired = []
        item = QueueItem(model="m", execute=_work, future=loop.create_future())
        item.deadline_handle = loop.call_later(0.01, fired.append, True)

        item.reject(QueueClearedError())
        await asyncio.sleep(0.03)

        assert fired == []
        assert item.deadline_handle is None
        item.future.exception()  # retrieve to silence "never retrieved"

    @pytest.mark.asyncio
    async def test_items_compare_by_identity(self):
        loop = asyncio.get_running_loop()
        a = QueueItem(model="m", execute=_work, future=loop.create_future(), id="x")
        b = QueueItem(model="m", execute=_work, future=loop.create_future(), id="x")
        assert a != b
