# ============================================================================
# WORK ITEM POLLER
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Scheduler - Fair selection of ready work items
# PURPOSE: Pick the next work item(s) a service should run
# CREATED: 16 OCT 2026
# EXPORTS: WorkItemPoller, calculate_query_cmr_limit, QUERY_CMR_SERVICE_REGEX
# ============================================================================
"""
Work Item Poller

Two selection paths over the WorkItemStore.

Single item (one transaction):
    user (lightest running load) -> job for that user -> one READY item.
    If the job has no READY item although its counters say it does, the
    counters are recomputed and the pass returns nothing.

Batch (for the scheduler):
    1. fetch up to batch_size jobs with ready work
    2. shuffle them
    3. give each job ceil(remaining_batch / remaining_jobs) items, one
       transaction per job, so slack left by small jobs flows to the jobs
       after them
    4. a job that yields nothing gets its counters recomputed; the batch
       carries on

Without the shuffle, slack could only ever flow towards the end of a fixed
ordering, so small jobs that always sort last would wait behind big ones.

Store errors are logged and the pass returns whatever was collected
(possibly nothing). Finding no work is not an error.
"""

import math
import random
import re
from typing import List, Optional

from core.logging import ComponentType, get_logger, log_context
from core.models import WorkItem, WorkItemEnvelope

logger = get_logger(__name__, ComponentType.SCHEDULER)

QUERY_CMR_SERVICE_REGEX = re.compile(r"harmonyservices/query-cmr:.*")


def calculate_query_cmr_limit(num_input_granules: int, query_cmr_item_count: int, page_size: int) -> int:
    """
    Granules the n-th query-cmr work item of a job may page through.

    Args:
        num_input_granules: Granules the job asked for
        query_cmr_item_count: Query-cmr items created so far for the job,
            including the one being dispatched
        page_size: CMR page size

    Returns:
        Limit in [0, page_size]
    """
    already_paged = max(0, query_cmr_item_count - 1) * page_size
    return max(0, min(page_size, num_input_granules - already_paged))


class WorkItemPoller:
    """
    Selects work for a service from the store.

    Args:
        store: WorkItemStore (or anything with a transaction() context)
        cmr_max_page_size: CMR page size for the query-cmr limit
        rng: Random source for the batch shuffle
    """

    def __init__(self, store, cmr_max_page_size: int = 2000, rng: Optional[random.Random] = None):
        self.store = store
        self.cmr_max_page_size = cmr_max_page_size
        self._rng = rng or random.Random()

    async def _envelope(self, tx, item: WorkItem) -> WorkItemEnvelope:
        """Wrap a claimed item; query-cmr items get their granule limit."""
        if not QUERY_CMR_SERVICE_REGEX.search(item.service_id):
            return WorkItemEnvelope(work_item=item)

        job = await tx.get_job(item.job_id)
        num_input_granules = job.num_input_granules if job else 0
        count = await tx.count_work_items(item.job_id, item.service_id)
        limit = calculate_query_cmr_limit(num_input_granules, count, self.cmr_max_page_size)
        logger.debug(
            f"Found work item {item.id} for service {item.service_id} "
            f"with max CMR granules {limit}"
        )
        return WorkItemEnvelope(work_item=item, max_cmr_granules=limit)

    # =========================================================================
    # SINGLE ITEM
    # =========================================================================

    async def get_work_from_database(self, service_id: str) -> Optional[WorkItemEnvelope]:
        """
        Claim one work item for a service.

        Returns:
            Envelope for the claimed item, or None if there is no work
        """
        try:
            async with self.store.transaction() as tx:
                username = await tx.next_ready_user(service_id)
                if not username:
                    return None

                job_id = await tx.next_ready_job(service_id, username)
                if not job_id:
                    return None

                items = await tx.next_ready_items(service_id, job_id, 1)
                if not items:
                    logger.warning(
                        f"user_work is out of sync for user {username} and job {job_id}, "
                        f"could not find ready work item"
                    )
                    logger.warning(f"Recalculating ready and running counts for job {job_id}")
                    await tx.recompute_counts(job_id)
                    return None

                return await self._envelope(tx, items[0])

        except Exception as e:
            logger.error(f"Error getting work from database: {e}")
            return None

    # =========================================================================
    # BATCH
    # =========================================================================

    def shuffle(self, job_ids: List[str]) -> List[str]:
        """Uniform random permutation, in place."""
        self._rng.shuffle(job_ids)
        return job_ids

    async def get_work_items_from_database(self, service_id: str, batch_size: int) -> List[WorkItemEnvelope]:
        """
        Claim up to batch_size work items spread across jobs.

        Returns:
            Envelopes for every item claimed before any error
        """
        envelopes: List[WorkItemEnvelope] = []
        try:
            async with self.store.transaction() as tx:
                job_ids = await tx.next_ready_job_ids(service_id, batch_size)

            self.shuffle(job_ids)
            remaining_jobs = len(job_ids)
            remaining_batch = batch_size

            for job_id in job_ids:
                allotment = math.ceil(remaining_batch / remaining_jobs) if remaining_jobs > 0 else 1
                claimed: List[WorkItemEnvelope] = []
                with log_context(job_id=job_id, service_id=service_id):
                    async with self.store.transaction() as tx:
                        items = await tx.next_ready_items(service_id, job_id, allotment)
                        if items:
                            for item in items:
                                claimed.append(await self._envelope(tx, item))
                        else:
                            logger.warning(
                                f"user_work is out of sync for job {job_id}, "
                                f"could not find ready work item"
                            )
                            logger.warning(f"Recalculating ready and running counts for job {job_id}")
                            await tx.recompute_counts(job_id)

                # committed
                envelopes.extend(claimed)
                remaining_jobs -= 1
                remaining_batch -= len(items)
                if remaining_batch <= 0:
                    break

        except Exception as e:
            logger.error(f"Error getting work items from database: {e}")

        return envelopes


__all__ = ["WorkItemPoller", "calculate_query_cmr_limit", "QUERY_CMR_SERVICE_REGEX"]
