# ============================================================================
# WORK DISPATCHER
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Scheduler - Consumer side of the queue protocol
# PURPOSE: Hand a worker its next work item from the service queue
# CREATED: 16 OCT 2026
# EXPORTS: WorkDispatcher
# ============================================================================
"""
Work Dispatcher

"Get work for service S":
    1. short poll S's queue
    2. if empty, ask the scheduler for more work for S (scheduler-request
       queue) and long poll S's queue
    3. delete the message before processing it; lost work is recovered by
       the stale-work requeuer, not by queue redelivery
    4. re-check the item in the store: a CANCELED item is dropped silently,
       anything else is set RUNNING and returned

The queue is never trusted for status; the store is.
"""

from typing import Optional

from pydantic import ValidationError

from core.contracts import WorkItemStatus
from core.logging import ComponentType, get_logger, log_context
from core.models import WorkItemEnvelope, encode_scheduling_request
from infrastructure.queue_factory import QueueFactory

logger = get_logger(__name__, ComponentType.SCHEDULER)


class WorkDispatcher:
    """
    Args:
        queues: Queue factory
        store: WorkItemStore
        scheduler: Optional in-process WorkScheduler; when given, scheduling
            requests are processed inline before the long poll (single
            process deployments and tests)
    """

    def __init__(self, queues: QueueFactory, store, scheduler=None):
        self.queues = queues
        self.store = store
        self.scheduler = scheduler

    async def make_work_schedule_request(self, service_id: str) -> None:
        """Ask the scheduler to queue work for a service (no-op without service queues)."""
        if not self.queues.use_service_queues:
            return
        await self.queues.scheduler_queue().send_message(encode_scheduling_request(service_id))

    async def get_work(self, service_id: str) -> Optional[WorkItemEnvelope]:
        """
        Next work item for a service.

        Returns:
            The dispatch envelope, or None when there is no work (or the
            dequeued item was canceled)

        Raises:
            QueueNotConfiguredError: If the service has no queue
        """
        queue = self.queues.queue_for_service(service_id)

        logger.debug(f"Short polling for work from queue {queue.name} for service {service_id}")
        message = await queue.get_message(0)

        if message is None:
            logger.debug(
                f"No work found on queue {queue.name} for service {service_id} "
                f"- requesting work from scheduler"
            )
            await self.make_work_schedule_request(service_id)

            if self.scheduler is not None:
                await self.scheduler.process_scheduler_queue()

            logger.debug(f"Long polling for work on queue {queue.name} for service {service_id}")
            message = await queue.get_message()

        if message is None:
            logger.debug(f"No work found on queue {queue.name} for service {service_id}")
            return None

        await queue.delete_message(message.receipt)

        try:
            envelope = WorkItemEnvelope.from_body(message.body)
        except ValidationError as e:
            logger.error(f"Discarding malformed message on queue {queue.name}: {e}")
            return None

        item = envelope.work_item
        with log_context(job_id=item.job_id, work_item_id=item.id, service_id=service_id):
            try:
                async with self.store.transaction() as tx:
                    current = await tx.get_work_item(item.id, for_update=True)
                    if current is None:
                        logger.warning(f"Work item {item.id} no longer exists, skipping")
                        return None
                    if current.status == WorkItemStatus.CANCELED:
                        logger.debug(f"Work item {item.id} was canceled, skipping")
                        return None
                    if current.status.is_terminal():
                        logger.warning(
                            f"Work item {item.id} is already {current.status.value}, "
                            f"skipping duplicate delivery"
                        )
                        return None

                    await tx.set_work_item_status(current, WorkItemStatus.RUNNING)
            except Exception as e:
                logger.error(f"Error updating work item status to running: {e}")
                return None

        item.status = WorkItemStatus.RUNNING
        return envelope


__all__ = ["WorkDispatcher"]
