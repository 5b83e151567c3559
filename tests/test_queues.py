# ============================================================================
# WORK QUEUE TESTS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Tests - In-memory queue and queue factory
# PURPOSE: Verify visibility timeouts, deletes, polling and queue lookup
# CREATED: 16 OCT 2026
# ============================================================================
"""
Work Queue Tests

Run with:
    pytest tests/test_queues.py -v
"""

import asyncio
import logging
import time
import pytest

from core.config import QueueDefaults
from core.errors import QueueNotConfiguredError
from infrastructure.queue import MemoryWorkQueue
from infrastructure.queue_factory import QueueFactory, create_queue_factory


class TestMemoryWorkQueue:
    def test_fifo_delivery(self):
        queue = MemoryWorkQueue("q")

        async def scenario():
            await queue.send_messages(["a", "b", "c"])
            return await queue.get_messages(2, wait_seconds=0)

        messages = asyncio.run(scenario())
        assert [m.body for m in messages] == ["a", "b"]

    def test_short_poll_returns_immediately(self):
        queue = MemoryWorkQueue("q", long_poll_seconds=30)

        started = time.monotonic()
        message = asyncio.run(queue.get_message(0))

        assert message is None
        assert time.monotonic() - started < 1

    def test_received_message_is_hidden_until_deleted(self):
        queue = MemoryWorkQueue("q", visibility_timeout_seconds=60)

        async def scenario():
            await queue.send_message("a")
            first = await queue.get_message(0)
            second = await queue.get_message(0)
            await queue.delete_message(first.receipt)
            return first, second

        first, second = asyncio.run(scenario())
        assert first.body == "a"
        assert second is None
        assert len(queue) == 0

    def test_redelivered_after_visibility_timeout(self):
        queue = MemoryWorkQueue("q", visibility_timeout_seconds=0.05)

        async def scenario():
            await queue.send_message("a")
            first = await queue.get_message(0)
            second = await queue.get_message(wait_seconds=1)
            return first, second

        first, second = asyncio.run(scenario())
        assert second.body == "a"
        assert second.receipt != first.receipt

    def test_redelivery_is_logged(self, caplog):
        queue = MemoryWorkQueue("q", visibility_timeout_seconds=0.05)

        async def scenario():
            await queue.send_message("a")
            await queue.get_message(0)
            await queue.get_message(wait_seconds=1)

        with caplog.at_level(logging.WARNING, logger="infrastructure.queue"):
            asyncio.run(scenario())

        assert "Redelivering message on queue q (delivery 2)" in caplog.messages

    def test_stale_receipt_does_not_delete(self):
        queue = MemoryWorkQueue("q", visibility_timeout_seconds=0.05)

        async def scenario():
            await queue.send_message("a")
            first = await queue.get_message(0)
            await queue.get_message(wait_seconds=1)
            await queue.delete_message(first.receipt)

        asyncio.run(scenario())
        assert len(queue) == 1

    def test_long_poll_wakes_on_send(self):
        queue = MemoryWorkQueue("q", long_poll_seconds=5)

        async def scenario():
            waiter = asyncio.create_task(queue.get_message())
            await asyncio.sleep(0.01)
            await queue.send_message("late")
            return await asyncio.wait_for(waiter, timeout=1)

        assert asyncio.run(scenario()).body == "late"


class TestQueueFactory:
    def _make_defaults(self, **kwargs):
        return QueueDefaults(service_queues={"svc:1": "svc-queue"}, **kwargs)

    def test_queue_for_service_is_cached(self):
        factory = QueueFactory(self._make_defaults(), MemoryWorkQueue)
        first = factory.queue_for_service("svc:1")
        assert first is factory.queue_for_service("svc:1")
        assert first.name == "svc-queue"

    def test_unmapped_service(self):
        factory = QueueFactory(self._make_defaults(), MemoryWorkQueue)
        with pytest.raises(QueueNotConfiguredError):
            factory.queue_for_service("svc:2")

    def test_scheduler_queue_name(self):
        factory = QueueFactory(self._make_defaults(scheduler_queue_name="sched"), MemoryWorkQueue)
        assert factory.scheduler_queue().name == "sched"

    def test_memory_backend(self):
        factory = create_queue_factory(self._make_defaults(), backend="memory")
        assert isinstance(factory.scheduler_queue(), MemoryWorkQueue)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_queue_factory(self._make_defaults(), backend="carrier-pigeon")


class TestQueueDefaults:
    def test_service_queues_from_env(self, monkeypatch):
        monkeypatch.setenv("SERVICE_QUEUES", '{"svc:1": "q1"}')
        monkeypatch.setenv("USE_SERVICE_QUEUES", "false")

        defaults = QueueDefaults.from_env()

        assert defaults.queue_name_for("svc:1") == "q1"
        assert defaults.queue_name_for("svc:2") is None
        assert defaults.use_service_queues is False

    def test_service_queues_must_be_object(self, monkeypatch):
        monkeypatch.setenv("SERVICE_QUEUES", '["q1"]')
        with pytest.raises(ValueError):
            QueueDefaults.from_env()
