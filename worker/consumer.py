# ============================================================================
# WORK CONSUMER
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Worker main loop
# PURPOSE: Get work for this worker's service, run it, report the outcome
# CREATED: 16 OCT 2026
# ============================================================================
"""
Work Consumer

Runs ``max_concurrent_work`` slots. Each slot repeatedly:
    1. asks the dispatcher for the next work item of the service
    2. runs it (query-cmr items over HTTP, everything else in the service
       container)
    3. reports the response to the store

A missing queue for the service is a configuration error: every slot
stops and run() raises it. Any other error in a slot is logged and the
slot carries on.
"""

import asyncio
import signal
from typing import Optional

from core.errors import QueueNotConfiguredError
from core.logging import ComponentType, get_logger, log_context
from core.models import WorkItemEnvelope
from scheduler.poller import QUERY_CMR_SERVICE_REGEX
from worker.contracts import ServiceResponse, WorkerConfig
from worker.executor import ServiceExecutor
from worker.query_cmr import QueryCmrExecutor
from worker.reporter import ResultReporter

logger = get_logger(__name__, ComponentType.WORKER)


class WorkConsumer:
    """
    Pulls and executes work items for one service.

    Args:
        config: Worker configuration
        dispatcher: WorkDispatcher for the service's queue
        executor: ServiceExecutor for container services
        reporter: ResultReporter
        query_cmr: QueryCmrExecutor, required when the service is query-cmr
    """

    def __init__(
        self,
        config: WorkerConfig,
        dispatcher,
        executor: ServiceExecutor,
        reporter: ResultReporter,
        query_cmr: Optional[QueryCmrExecutor] = None,
    ):
        self.config = config
        self.dispatcher = dispatcher
        self.executor = executor
        self.reporter = reporter
        self.query_cmr = query_cmr

        # State
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._active = 0
        self._fatal: Optional[QueueNotConfiguredError] = None

        # Stats
        self._items_received = 0
        self._items_succeeded = 0
        self._items_failed = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> dict:
        return {
            "items_received": self._items_received,
            "items_succeeded": self._items_succeeded,
            "items_failed": self._items_failed,
            "active": self._active,
        }

    async def execute(self, envelope: WorkItemEnvelope) -> ServiceResponse:
        """Run one work item with the executor its service needs."""
        item = envelope.work_item
        if QUERY_CMR_SERVICE_REGEX.search(item.service_id):
            if self.query_cmr is None:
                return ServiceResponse.failure("Query CMR executor is not configured")
            return await self.query_cmr.run(item, envelope.max_cmr_granules)
        return await self.executor.run_service(item)

    async def process_next(self) -> bool:
        """
        Get, run and report one work item.

        Returns:
            True if an item was processed

        Raises:
            QueueNotConfiguredError: If the service has no queue
        """
        envelope = await self.dispatcher.get_work(self.config.service_id)
        if envelope is None:
            return False

        item = envelope.work_item
        self._items_received += 1
        self._active += 1
        try:
            with log_context(job_id=item.job_id, work_item_id=item.id,
                             service_id=item.service_id, worker_id=self.config.worker_id):
                logger.info(f"Processing work item {item.id}")
                response = await self.execute(envelope)
                if response.is_error:
                    self._items_failed += 1
                else:
                    self._items_succeeded += 1
                await self.reporter.report(item, response)
        finally:
            self._active -= 1
        return True

    async def _slot(self, slot: int) -> None:
        while not self._shutdown_event.is_set():
            try:
                await self.process_next()
            except QueueNotConfiguredError as e:
                logger.error(str(e))
                self._fatal = self._fatal or e
                self._shutdown_event.set()
                return
            except Exception as e:
                logger.exception(f"Error in work slot {slot}: {e}")
                await asyncio.sleep(1)

    async def run(self) -> None:
        """Run the slots until stop() is called."""
        if self._running:
            logger.warning("Consumer already running")
            return

        logger.info(
            f"Starting consumer: worker_id={self.config.worker_id}, "
            f"service={self.config.service_id}, slots={self.config.max_concurrent_work}"
        )
        self._running = True
        self._fatal = None
        self._shutdown_event.clear()
        try:
            async with asyncio.TaskGroup() as tg:
                for slot in range(max(1, self.config.max_concurrent_work)):
                    tg.create_task(self._slot(slot))
            if self._fatal is not None:
                raise self._fatal
        finally:
            self._running = False
            logger.info(
                f"Consumer stopped. Stats: received={self._items_received}, "
                f"succeeded={self._items_succeeded}, failed={self._items_failed}"
            )

    def stop(self) -> None:
        """Ask the slots to finish their current item and exit."""
        logger.info("Stopping consumer...")
        self._shutdown_event.set()


def install_signal_handlers(consumer: WorkConsumer) -> None:
    """Stop the consumer on SIGTERM / SIGINT."""
    loop = asyncio.get_running_loop()

    def shutdown_handler():
        logger.info("Shutdown signal received")
        consumer.stop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, shutdown_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


__all__ = ["WorkConsumer", "install_signal_handlers"]
