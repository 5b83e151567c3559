# ============================================================================
# DISPATCH TESTS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Tests - Scheduler queue and service queue round trip
# PURPOSE: Verify WorkScheduler and WorkDispatcher over in-memory queues
# CREATED: 16 OCT 2026
# ============================================================================
"""
Dispatch Tests

Covers:
1. WorkScheduler drains scheduling requests, deduplicates per service
2. Unconfigured services raise after the other services are handled
3. WorkDispatcher short poll / request / long poll
4. Canceled and already finished items are dropped on dequeue
5. In-process scheduler wiring (single process mode)

Uses MemoryWorkQueue with short poll windows and the in-memory store.

Run with:
    pytest tests/test_dispatch.py -v
"""

import asyncio
import random
import pytest

from core.config import QueueDefaults
from core.contracts import WorkItemStatus
from core.errors import QueueNotConfiguredError
from infrastructure.queue import MemoryWorkQueue
from infrastructure.queue_factory import QueueFactory
from scheduler.dispatcher import WorkDispatcher
from scheduler.poller import WorkItemPoller
from scheduler.work_scheduler import WorkScheduler
from tests.fakes import SERVICE_ID, InMemoryStore


# ============================================================================
# FIXTURES
# ============================================================================

def _make_queues(use_service_queues=True):
    defaults = QueueDefaults(
        scheduler_queue_name="scheduler",
        service_queues={SERVICE_ID: "subsetter"},
        use_service_queues=use_service_queues,
        long_poll_seconds=0.05,
    )
    return QueueFactory(defaults, lambda name: MemoryWorkQueue(name, long_poll_seconds=0.05))


def _make_scheduler(store, queues, batch_size=10):
    poller = WorkItemPoller(store, rng=random.Random(0))
    return WorkScheduler(queues, poller, batch_size=batch_size, interval_seconds=0.01)


@pytest.fixture
def store():
    s = InMemoryStore()
    s.add_job("job-1", ready=3)
    return s


# ============================================================================
# WORK SCHEDULER
# ============================================================================


class TestWorkScheduler:
    def test_schedules_requested_service(self, store):
        queues = _make_queues()
        scheduler = _make_scheduler(store, queues)

        async def scenario():
            await queues.scheduler_queue().send_message(SERVICE_ID)
            return await scheduler.process_scheduler_queue()

        results = asyncio.run(scenario())

        assert results == {SERVICE_ID: 3}
        assert len(queues.queue_for_service(SERVICE_ID)) == 3
        assert len(queues.scheduler_queue()) == 0
        assert store.counts("job-1", SERVICE_ID) == (0, 3)

    def test_duplicate_requests_collapse(self, store):
        queues = _make_queues()
        scheduler = _make_scheduler(store, queues)

        async def scenario():
            await queues.scheduler_queue().send_messages([SERVICE_ID, SERVICE_ID, f'"{SERVICE_ID}"'])
            return await scheduler.process_scheduler_queue()

        results = asyncio.run(scenario())

        assert results == {SERVICE_ID: 3}
        assert scheduler.requests_processed == 3
        assert scheduler.items_scheduled == 3

    def test_malformed_request_is_skipped(self, store):
        queues = _make_queues()
        scheduler = _make_scheduler(store, queues)

        async def scenario():
            await queues.scheduler_queue().send_messages(['"abc', SERVICE_ID])
            return await scheduler.process_scheduler_queue()

        results = asyncio.run(scenario())

        assert results == {SERVICE_ID: 3}
        assert scheduler.requests_processed == 2
        assert len(queues.scheduler_queue()) == 0
        assert len(queues.queue_for_service(SERVICE_ID)) == 3

    def test_no_requests(self, store):
        scheduler = _make_scheduler(store, _make_queues())
        assert asyncio.run(scheduler.process_scheduler_queue()) == {}

    def test_no_ready_work(self):
        queues = _make_queues()
        scheduler = _make_scheduler(InMemoryStore(), queues)

        async def scenario():
            await queues.scheduler_queue().send_message(SERVICE_ID)
            return await scheduler.process_scheduler_queue()

        assert asyncio.run(scenario()) == {SERVICE_ID: 0}

    def test_unconfigured_service_raises_after_others(self, store):
        queues = _make_queues()
        scheduler = _make_scheduler(store, queues)

        async def scenario():
            await queues.scheduler_queue().send_messages(["ghcr.io/acme/unknown:1", SERVICE_ID])
            await scheduler.process_scheduler_queue()

        with pytest.raises(QueueNotConfiguredError):
            asyncio.run(scenario())

        assert len(queues.queue_for_service(SERVICE_ID)) == 3
        assert len(queues.scheduler_queue()) == 0

    def test_run_stops_on_event(self, store):
        queues = _make_queues()
        scheduler = _make_scheduler(store, queues)

        async def scenario():
            stop = asyncio.Event()
            task = asyncio.create_task(scheduler.run(stop))
            await queues.scheduler_queue().send_message(SERVICE_ID)
            for _ in range(50):
                if scheduler.items_scheduled:
                    break
                await asyncio.sleep(0.01)
            stop.set()
            await asyncio.wait_for(task, timeout=1)

        asyncio.run(scenario())
        assert scheduler.items_scheduled == 3


# ============================================================================
# WORK DISPATCHER
# ============================================================================


class TestWorkDispatcher:
    def test_returns_queued_item(self, store):
        queues = _make_queues()
        scheduler = _make_scheduler(store, queues)
        dispatcher = WorkDispatcher(queues, store)

        async def scenario():
            await scheduler.schedule_service(SERVICE_ID)
            return await dispatcher.get_work(SERVICE_ID)

        envelope = asyncio.run(scenario())

        assert envelope.work_item.status == WorkItemStatus.RUNNING
        assert len(queues.queue_for_service(SERVICE_ID)) == 2
        assert store.counts("job-1", SERVICE_ID) == (0, 3)

    def test_empty_queue_requests_work(self, store):
        queues = _make_queues()
        dispatcher = WorkDispatcher(queues, store)

        envelope = asyncio.run(dispatcher.get_work(SERVICE_ID))

        assert envelope is None
        assert len(queues.scheduler_queue()) == 1

    def test_no_request_without_service_queues(self, store):
        queues = _make_queues(use_service_queues=False)
        dispatcher = WorkDispatcher(queues, store)

        asyncio.run(dispatcher.make_work_schedule_request(SERVICE_ID))
        assert len(queues.scheduler_queue()) == 0

    def test_in_process_scheduler_fills_queue(self, store):
        queues = _make_queues()
        scheduler = _make_scheduler(store, queues)
        dispatcher = WorkDispatcher(queues, store, scheduler=scheduler)

        envelope = asyncio.run(dispatcher.get_work(SERVICE_ID))

        assert envelope is not None
        assert envelope.work_item.job_id == "job-1"
        assert len(queues.queue_for_service(SERVICE_ID)) == 2

    def test_canceled_item_is_dropped(self, store):
        queues = _make_queues()
        scheduler = _make_scheduler(store, queues, batch_size=1)
        dispatcher = WorkDispatcher(queues, store)

        async def scenario():
            await scheduler.schedule_service(SERVICE_ID)
            async with store.transaction() as tx:
                await tx.cancel_job_work_items("job-1")
            return await dispatcher.get_work(SERVICE_ID)

        assert asyncio.run(scenario()) is None
        assert len(queues.queue_for_service(SERVICE_ID)) == 0

    def test_finished_item_is_not_rerun(self, store):
        queues = _make_queues()
        scheduler = _make_scheduler(store, queues, batch_size=1)
        dispatcher = WorkDispatcher(queues, store)

        async def scenario():
            await scheduler.schedule_service(SERVICE_ID)
            item_id = store.claims[0]
            async with store.transaction() as tx:
                item = await tx.get_work_item(item_id)
                item.mark_successful([])
                await tx.save_work_item_outcome(WorkItemStatus.RUNNING, item)
            return await dispatcher.get_work(SERVICE_ID)

        assert asyncio.run(scenario()) is None

    def test_malformed_message_is_discarded(self, store):
        queues = _make_queues()
        dispatcher = WorkDispatcher(queues, store)

        async def scenario():
            await queues.queue_for_service(SERVICE_ID).send_message("not an envelope")
            return await dispatcher.get_work(SERVICE_ID)

        assert asyncio.run(scenario()) is None
        assert len(queues.queue_for_service(SERVICE_ID)) == 0

    def test_store_error_returns_none(self, store):
        queues = _make_queues()
        scheduler = _make_scheduler(store, queues, batch_size=1)
        dispatcher = WorkDispatcher(queues, store)

        async def scenario():
            await scheduler.schedule_service(SERVICE_ID)
            store.errors["get_work_item"] = RuntimeError("connection lost")
            return await dispatcher.get_work(SERVICE_ID)

        assert asyncio.run(scenario()) is None

    def test_unconfigured_service(self, store):
        dispatcher = WorkDispatcher(_make_queues(), store)
        with pytest.raises(QueueNotConfiguredError):
            asyncio.run(dispatcher.get_work("ghcr.io/acme/unknown:1"))
