# ============================================================================
# WORK ITEM STORE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Transactional store for jobs, work items, batches, counts
# PURPOSE: Single source of truth for work item status and user work counts
# CREATED: 16 OCT 2026
# EXPORTS: WorkItemStore, WorkItemTransaction
# DEPENDENCIES: psycopg, psycopg_pool
# ============================================================================
"""
Work Item Store

WorkItemStore opens transactions; WorkItemTransaction exposes every
operation the scheduler and the workers need, each one keeping the
user_work counters in step with the work item rows it changes.

Counter rules (applied in the same transaction as the status change):
    READY   -> RUNNING      ready -1, running +1
    RUNNING -> READY        ready +1, running -1 (requeue)
    RUNNING -> terminal     running -1
    READY   -> CANCELED     ready -1
    create READY           ready +1

Usage:
    store = WorkItemStore(pool)

    async with store.transaction() as tx:
        username = await tx.next_ready_user(service_id)
        ...
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Tuple

from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

from core.contracts import WorkItemStatus
from core.models import Batch, Job, WorkItem
from .batch_repo import BatchRepository
from .job_repo import JobRepository
from .user_work_repo import UserWorkRepository
from .work_item_repo import WorkItemRepository

logger = logging.getLogger(__name__)


def count_deltas(old: WorkItemStatus, new: WorkItemStatus) -> Tuple[int, int]:
    """
    (ready_delta, running_delta) for a status change.

    Only READY and RUNNING are counted, so the delta is "leave old bucket,
    enter new bucket".
    """
    ready = running = 0
    if old == new:
        return 0, 0
    if old == WorkItemStatus.READY:
        ready -= 1
    elif old == WorkItemStatus.RUNNING:
        running -= 1
    if new == WorkItemStatus.READY:
        ready += 1
    elif new == WorkItemStatus.RUNNING:
        running += 1
    return ready, running


class WorkItemTransaction:
    """Operations bound to one open database transaction."""

    def __init__(self, conn: AsyncConnection):
        self.conn = conn
        self.jobs = JobRepository(conn)
        self.work_items = WorkItemRepository(conn)
        self.user_work = UserWorkRepository(conn)
        self.batches = BatchRepository(conn)

    # =========================================================================
    # FAIRNESS
    # =========================================================================

    async def next_ready_user(self, service_id: str) -> Optional[str]:
        return await self.user_work.next_username(service_id)

    async def next_ready_job(self, service_id: str, username: str) -> Optional[str]:
        return await self.user_work.next_job_id_for_user(service_id, username)

    async def next_ready_job_ids(self, service_id: str, limit: int) -> List[str]:
        return await self.user_work.next_job_ids(service_id, limit)

    async def next_ready_items(self, service_id: str, job_id: str, limit: int) -> List[WorkItem]:
        """
        Claim up to ``limit`` READY items and move the counters.

        Returns:
            The claimed items, now RUNNING (empty if none were READY)
        """
        items = await self.work_items.claim_ready(service_id, job_id, limit)
        if items:
            await self.user_work.adjust_counts(
                job_id, service_id, ready_delta=-len(items), running_delta=len(items)
            )
        return items

    async def recompute_counts(self, job_id: str) -> None:
        await self.user_work.recalculate_counts(job_id)

    async def ready_count_for_service(self, service_id: str) -> int:
        return await self.user_work.ready_count_for_service(service_id)

    # =========================================================================
    # JOBS & ITEMS
    # =========================================================================

    async def get_job(self, job_id: str) -> Optional[Job]:
        return await self.jobs.get(job_id)

    async def create_job(self, job: Job) -> Job:
        return await self.jobs.create(job)

    async def get_work_item(self, work_item_id: int, for_update: bool = False) -> Optional[WorkItem]:
        return await self.work_items.get(work_item_id, for_update=for_update)

    async def get_work_item_status(self, work_item_id: int) -> Optional[WorkItemStatus]:
        return await self.work_items.get_status(work_item_id)

    async def count_work_items(self, job_id: str, service_id: str) -> int:
        return await self.work_items.count_for_job_service(job_id, service_id)

    async def create_work_items(self, job: Job, items: List[WorkItem]) -> List[WorkItem]:
        """Insert READY items and add them to the ready counters."""
        created = [await self.work_items.create(item) for item in items]

        per_service: Dict[str, int] = {}
        for item in created:
            if item.status == WorkItemStatus.READY:
                per_service[item.service_id] = per_service.get(item.service_id, 0) + 1
        for service_id, count in per_service.items():
            await self.user_work.add_ready(job.username, job.job_id, service_id, count)

        return created

    async def set_work_item_status(self, item: WorkItem, status: WorkItemStatus) -> WorkItem:
        """
        Change status and counters together.

        The current status is re-read under a row lock; the caller's copy
        may be stale.
        """
        current = await self.work_items.get(item.id, for_update=True)
        if current is None:
            raise LookupError(f"Work item {item.id} not found")

        ready_delta, running_delta = count_deltas(current.status, status)
        await self.work_items.update_status(
            item.id, status, reset_started_at=(status == WorkItemStatus.READY)
        )
        await self.user_work.adjust_counts(
            current.job_id, current.service_id, ready_delta, running_delta
        )
        current.status = status
        return current

    async def save_work_item_outcome(self, previous: WorkItemStatus, item: WorkItem) -> None:
        """
        Persist an item whose status was changed in memory (finish / requeue).

        Args:
            previous: Status the row had when it was locked
            item: Item carrying the new status and outcome fields
        """
        await self.work_items.save_outcome(item)
        ready_delta, running_delta = count_deltas(previous, item.status)
        await self.user_work.adjust_counts(
            item.job_id, item.service_id, ready_delta, running_delta
        )

    async def cancel_job_work_items(self, job_id: str) -> int:
        """Cancel every non-terminal item of a job."""
        items = await self.work_items.list_active_for_job(job_id)
        for item in items:
            previous = item.status
            item.mark_canceled()
            await self.save_work_item_outcome(previous, item)
        return len(items)

    async def stale_running_items(self, older_than_seconds: int, limit: int = 100) -> List[WorkItem]:
        return await self.work_items.list_stale_running(older_than_seconds, limit)

    # =========================================================================
    # BATCHES
    # =========================================================================

    async def highest_batch(self, job_id: str, service_id: str) -> Optional[Batch]:
        return await self.batches.highest(job_id, service_id)

    async def save_batch(self, batch: Batch) -> Batch:
        return await self.batches.save(batch)

    async def next_batch(self, job_id: str, service_id: str) -> Batch:
        """Allocate and save the next batch for (job, service)."""
        highest = await self.highest_batch(job_id, service_id)
        batch_id = highest.batch_id + 1 if highest else 1
        return await self.save_batch(
            Batch(job_id=job_id, service_id=service_id, batch_id=batch_id)
        )


class WorkItemStore:
    """Opens WorkItemTransactions from a connection pool."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[WorkItemTransaction]:
        """
        One database transaction. Commits on normal exit, rolls back if the
        block raises.
        """
        async with self.pool.connection() as conn:
            async with conn.transaction():
                yield WorkItemTransaction(conn)

    async def ping(self) -> bool:
        """True if the database answers."""
        async with self.pool.connection() as conn:
            await conn.execute("SELECT 1")
        return True


__all__ = ["WorkItemStore", "WorkItemTransaction", "count_deltas"]
