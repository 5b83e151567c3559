# ============================================================================
# RESULT REPORTER
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Records execution outcomes
# PURPOSE: Move a RUNNING work item to its next state from a ServiceResponse
# CREATED: 16 OCT 2026
# ============================================================================
"""
Result Reporter

Writes a ServiceResponse back to the WorkItemStore in one transaction:

    success                        -> SUCCESSFUL (results, sizes, scroll id)
    error, retry_count < retries   -> READY, retry_count + 1
    error otherwise                -> FAILED with the error message

The row is locked and re-read first. A result for an item that is no
longer RUNNING (canceled while it ran, or already requeued by the stale
work requeuer) is discarded.
"""

from typing import Optional

from core.contracts import WorkItemStatus
from core.logging import ComponentType, get_logger, log_context
from core.models import WorkItem
from worker.contracts import ServiceResponse

logger = get_logger(__name__, ComponentType.WORKER)


class ResultReporter:
    """Records execution results in the store."""

    def __init__(self, store, max_retries: int = 3):
        self.store = store
        self.max_retries = max_retries

    async def report(self, work_item: WorkItem, response: ServiceResponse) -> Optional[WorkItemStatus]:
        """
        Record the outcome of one run.

        Returns:
            The item's new status, or None if the result was discarded
        """
        with log_context(job_id=work_item.job_id, work_item_id=work_item.id, service_id=work_item.service_id):
            async with self.store.transaction() as tx:
                current = await tx.get_work_item(work_item.id, for_update=True)
                if current is None:
                    logger.warning(f"Work item {work_item.id} no longer exists, discarding result")
                    return None
                if current.status != WorkItemStatus.RUNNING:
                    logger.info(
                        f"Work item {work_item.id} is {current.status.value}, discarding result"
                    )
                    return None

                previous = current.status
                if not response.is_error:
                    current.mark_successful(
                        response.batch_catalogs or [],
                        output_item_sizes=response.output_item_sizes,
                        total_items_size=response.total_items_size,
                        scroll_id=response.scroll_id,
                    )
                    if response.hits is not None:
                        current.hits = response.hits
                elif current.retry_count < self.max_retries:
                    current.prepare_retry()
                    current.error_message = (response.error or "")[:4096]
                    logger.warning(
                        f"Work item {current.id} failed, retrying "
                        f"({current.retry_count} of {self.max_retries}): {response.error}"
                    )
                else:
                    current.mark_failed(response.error or "Unknown error")
                    logger.error(f"Work item {current.id} failed: {response.error}")

                await tx.save_work_item_outcome(previous, current)

            logger.info(f"Work item {current.id} is now {current.status.value}")
            return current.status


__all__ = ["ResultReporter"]
