# ============================================================================
# WORK SCHEDULER
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Scheduler - Bridges the poller and the service queues
# PURPOSE: Turn scheduling requests into dispatch envelopes on service queues
# CREATED: 16 OCT 2026
# EXPORTS: WorkScheduler
# ============================================================================
"""
Work Scheduler

Drains the scheduler-request queue. For every distinct serviceID found it
runs the poller's batch path and sends the claimed items to that
service's queue.

Claimed items whose envelopes fail to send stay RUNNING and are picked up
by the stale-work requeuer.

Usage:
    scheduler = WorkScheduler(queues, poller, batch_size=50)
    await scheduler.run(stop_event)
"""

import asyncio
from typing import Dict, List, Optional

from core.errors import QueueNotConfiguredError
from core.logging import ComponentType, get_logger, log_context
from core.models import decode_scheduling_request
from infrastructure.queue_factory import QueueFactory
from scheduler.poller import WorkItemPoller

logger = get_logger(__name__, ComponentType.SCHEDULER)


class WorkScheduler:
    """Processes the scheduler-request queue."""

    def __init__(
        self,
        queues: QueueFactory,
        poller: WorkItemPoller,
        batch_size: int = 50,
        receive_count: int = 10,
        interval_seconds: float = 1.0,
    ):
        self.queues = queues
        self.poller = poller
        self.batch_size = batch_size
        self.receive_count = receive_count
        self.interval_seconds = interval_seconds

        # Stats
        self.requests_processed = 0
        self.items_scheduled = 0

    async def schedule_service(self, service_id: str) -> int:
        """
        Queue a batch of work for one service.

        Returns:
            Number of envelopes sent

        Raises:
            QueueNotConfiguredError: If the service has no queue
        """
        queue = self.queues.queue_for_service(service_id)
        envelopes = await self.poller.get_work_items_from_database(service_id, self.batch_size)
        if not envelopes:
            logger.debug(f"No ready work for service {service_id}")
            return 0

        await queue.send_messages([e.to_body() for e in envelopes])
        logger.info(f"Scheduled {len(envelopes)} work items on queue {queue.name}")
        self.items_scheduled += len(envelopes)
        return len(envelopes)

    async def process_scheduler_queue(self) -> Dict[str, int]:
        """
        Handle pending scheduling requests once.

        Requests are deleted up front; duplicates for the same service in
        one pass collapse to one batch.

        Returns:
            Envelopes sent per service

        Raises:
            QueueNotConfiguredError: After the other services were handled,
                if a request named a service without a queue
        """
        scheduler_queue = self.queues.scheduler_queue()
        messages = await scheduler_queue.get_messages(self.receive_count, wait_seconds=0)
        if not messages:
            return {}

        service_ids: List[str] = []
        for message in messages:
            await scheduler_queue.delete_message(message.receipt)
            try:
                service_id = decode_scheduling_request(message.body)
            except ValueError as e:
                logger.error(f"Discarding malformed scheduling request {message.body!r}: {e}")
                continue
            if service_id and service_id not in service_ids:
                service_ids.append(service_id)

        self.requests_processed += len(messages)

        results: Dict[str, int] = {}
        not_configured: Optional[QueueNotConfiguredError] = None
        for service_id in service_ids:
            with log_context(service_id=service_id):
                try:
                    results[service_id] = await self.schedule_service(service_id)
                except QueueNotConfiguredError as e:
                    logger.error(str(e))
                    not_configured = not_configured or e

        if not_configured is not None:
            raise not_configured
        return results

    async def run(self, stop_event: asyncio.Event) -> None:
        """Process scheduling requests until stop_event is set."""
        logger.info(f"Work scheduler started (batch_size={self.batch_size})")

        while not stop_event.is_set():
            try:
                handled = await self.process_scheduler_queue()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Error processing scheduler queue: {e}")
                handled = {}

            if handled:
                # more requests may be waiting
                continue
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info(
            f"Work scheduler stopped. Stats: requests={self.requests_processed}, "
            f"scheduled={self.items_scheduled}"
        )


__all__ = ["WorkScheduler"]
