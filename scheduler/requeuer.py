# ============================================================================
# STALE WORK REQUEUER
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Scheduler - Recovery for lost RUNNING items
# PURPOSE: Put RUNNING items nobody is working on back to READY (or FAIL them)
# CREATED: 16 OCT 2026
# EXPORTS: StaleWorkRequeuer
# ============================================================================
"""
Stale Work Requeuer

Queue messages are deleted before processing and a claimed batch may fail
to send, so some items end up RUNNING with no worker. Any RUNNING item
older than stale_running_seconds is:

    retry_count < max_retries  -> READY, retry_count + 1
    otherwise                  -> FAILED

Rows are locked with SKIP LOCKED, so several requeuers can run at once.
"""

import asyncio
from typing import Tuple

from core.logging import ComponentType, get_logger, log_context

logger = get_logger(__name__, ComponentType.SCHEDULER)


class StaleWorkRequeuer:
    """Periodically recovers stale RUNNING work items."""

    def __init__(
        self,
        store,
        max_retries: int = 3,
        stale_running_seconds: int = 9000,
        interval_seconds: float = 60.0,
        limit: int = 100,
    ):
        self.store = store
        self.max_retries = max_retries
        self.stale_running_seconds = stale_running_seconds
        self.interval_seconds = interval_seconds
        self.limit = limit

    async def requeue_stale_items(self) -> Tuple[int, int]:
        """
        One recovery pass.

        Returns:
            (requeued, failed)
        """
        requeued = failed = 0
        async with self.store.transaction() as tx:
            items = await tx.stale_running_items(self.stale_running_seconds, self.limit)
            for item in items:
                previous = item.status
                with log_context(job_id=item.job_id, work_item_id=item.id, service_id=item.service_id):
                    if item.retry_count < self.max_retries:
                        item.prepare_retry()
                        requeued += 1
                        logger.warning(
                            f"Requeueing stale work item {item.id} "
                            f"(retry {item.retry_count} of {self.max_retries})"
                        )
                    else:
                        item.mark_failed(
                            f"Work item did not complete after {self.max_retries} retries"
                        )
                        failed += 1
                        logger.error(f"Stale work item {item.id} exhausted its retries")
                    await tx.save_work_item_outcome(previous, item)

        if requeued or failed:
            logger.info(f"Stale work pass: requeued={requeued}, failed={failed}")
        return requeued, failed

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run recovery passes until stop_event is set."""
        logger.info(
            f"Stale work requeuer started (stale after {self.stale_running_seconds}s, "
            f"max_retries={self.max_retries})"
        )
        while not stop_event.is_set():
            try:
                await self.requeue_stale_items()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Stale work pass failed: {e}")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Stale work requeuer stopped")


__all__ = ["StaleWorkRequeuer"]
