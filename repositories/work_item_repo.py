# ============================================================================
# WORK ITEM REPOSITORY
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - WorkItem persistence
# PURPOSE: Database access for work_items table
# CREATED: 15 OCT 2026
# ============================================================================
"""
Work Item Repository

SQL for the work_items table. The repository is bound to one connection
so that several repositories can share the caller's transaction; the
counters in user_work must change in the same transaction as the item
status.

Claims use SELECT ... FOR UPDATE SKIP LOCKED so that concurrent claimers
never receive the same READY row.
"""

import logging
from typing import Any, Dict, List, Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row
from psycopg.types.json import Json

from core.contracts import WorkItemStatus
from core.models import WorkItem
from .database import TABLE_WORK_ITEMS

logger = logging.getLogger(__name__)


class WorkItemRepository:
    """Repository for WorkItem entities."""

    def __init__(self, conn: AsyncConnection):
        self.conn = conn

    async def _fetchall(self, query: sql.Composable, params: Any = None) -> List[Dict[str, Any]]:
        async with self.conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(query, params)
            return await cur.fetchall()

    async def _fetchone(self, query: sql.Composable, params: Any = None) -> Optional[Dict[str, Any]]:
        async with self.conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(query, params)
            return await cur.fetchone()

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create(self, item: WorkItem) -> WorkItem:
        """
        Insert a new work item and return it with its assigned id.

        Args:
            item: WorkItem (id is ignored)
        """
        row = await self._fetchone(
            sql.SQL("""
            INSERT INTO {} (
                job_id, service_id, status, retry_count, scroll_id,
                operation, stac_catalog_location, hits, results,
                output_item_sizes, total_items_size
            ) VALUES (
                %(job_id)s, %(service_id)s, %(status)s, %(retry_count)s, %(scroll_id)s,
                %(operation)s, %(stac_catalog_location)s, %(hits)s, %(results)s,
                %(output_item_sizes)s, %(total_items_size)s
            )
            RETURNING *
            """).format(TABLE_WORK_ITEMS),
            {
                "job_id": item.job_id,
                "service_id": item.service_id,
                "status": item.status.value,
                "retry_count": item.retry_count,
                "scroll_id": item.scroll_id,
                "hits": item.hits,
                "operation": Json(item.operation),
                "stac_catalog_location": item.stac_catalog_location,
                "results": Json(item.results),
                "output_item_sizes": Json(item.output_item_sizes),
                "total_items_size": item.total_items_size,
            },
        )
        return self._row_to_work_item(row)

    # =========================================================================
    # READ
    # =========================================================================

    async def get(self, work_item_id: int, for_update: bool = False) -> Optional[WorkItem]:
        """
        Get a work item by ID.

        Args:
            work_item_id: Work item identifier
            for_update: Lock the row until the transaction ends
        """
        query = sql.SQL("SELECT * FROM {} WHERE id = %s").format(TABLE_WORK_ITEMS)
        if for_update:
            query = sql.SQL("{} FOR UPDATE").format(query)

        row = await self._fetchone(query, (work_item_id,))
        return self._row_to_work_item(row) if row else None

    async def get_status(self, work_item_id: int) -> Optional[WorkItemStatus]:
        row = await self._fetchone(
            sql.SQL("SELECT status FROM {} WHERE id = %s").format(TABLE_WORK_ITEMS),
            (work_item_id,),
        )
        return WorkItemStatus(row["status"]) if row else None

    async def count_for_job_service(self, job_id: str, service_id: str) -> int:
        """Number of work items (any status) for a (job, service) pair."""
        row = await self._fetchone(
            sql.SQL("""
            SELECT COUNT(*) AS count FROM {}
            WHERE job_id = %s AND service_id = %s
            """).format(TABLE_WORK_ITEMS),
            (job_id, service_id),
        )
        return int(row["count"]) if row else 0

    async def list_stale_running(self, older_than_seconds: int, limit: int = 100) -> List[WorkItem]:
        """
        RUNNING items whose started_at is older than the threshold.

        Rows are locked; rows locked by another requeuer are skipped.
        """
        rows = await self._fetchall(
            sql.SQL("""
            SELECT * FROM {}
            WHERE status = 'running'
              AND started_at < NOW() - make_interval(secs => %s)
            ORDER BY started_at ASC
            LIMIT %s
            FOR UPDATE SKIP LOCKED
            """).format(TABLE_WORK_ITEMS),
            (older_than_seconds, limit),
        )
        return [self._row_to_work_item(row) for row in rows]

    async def list_active_for_job(self, job_id: str) -> List[WorkItem]:
        rows = await self._fetchall(
            sql.SQL("""
            SELECT * FROM {}
            WHERE job_id = %s AND status IN ('ready', 'running')
            ORDER BY id
            FOR UPDATE
            """).format(TABLE_WORK_ITEMS),
            (job_id,),
        )
        return [self._row_to_work_item(row) for row in rows]

    # =========================================================================
    # CLAIM
    # =========================================================================

    async def claim_ready(self, service_id: str, job_id: str, limit: int) -> List[WorkItem]:
        """
        Move up to ``limit`` READY items for (job, service) to RUNNING.

        Returns:
            Claimed items in id order (possibly empty)
        """
        if limit <= 0:
            return []

        rows = await self._fetchall(
            sql.SQL("""
            WITH claimed AS (
                SELECT id FROM {table}
                WHERE job_id = %(job_id)s
                  AND service_id = %(service_id)s
                  AND status = 'ready'
                ORDER BY id
                LIMIT %(limit)s
                FOR UPDATE SKIP LOCKED
            )
            UPDATE {table} w
            SET status = 'running', started_at = NOW()
            FROM claimed
            WHERE w.id = claimed.id
            RETURNING w.*
            """).format(table=TABLE_WORK_ITEMS),
            {"job_id": job_id, "service_id": service_id, "limit": limit},
        )
        items = [self._row_to_work_item(row) for row in rows]
        items.sort(key=lambda i: i.id)
        return items

    # =========================================================================
    # UPDATE
    # =========================================================================

    async def update_status(
        self,
        work_item_id: int,
        status: WorkItemStatus,
        *,
        reset_started_at: bool = False,
    ) -> None:
        """Set the status (RUNNING also stamps started_at)."""
        if status == WorkItemStatus.RUNNING:
            started = sql.SQL("NOW()")
        elif reset_started_at:
            started = sql.SQL("NULL")
        else:
            started = sql.SQL("started_at")

        await self.conn.execute(
            sql.SQL("UPDATE {} SET status = %s, started_at = {} WHERE id = %s").format(
                TABLE_WORK_ITEMS, started
            ),
            (status.value, work_item_id),
        )

    async def save_outcome(self, item: WorkItem) -> None:
        """Persist status and outcome fields of a finished or requeued item."""
        await self.conn.execute(
            sql.SQL("""
            UPDATE {} SET
                status = %(status)s,
                retry_count = %(retry_count)s,
                scroll_id = %(scroll_id)s,
                hits = %(hits)s,
                results = %(results)s,
                output_item_sizes = %(output_item_sizes)s,
                total_items_size = %(total_items_size)s,
                error_message = %(error_message)s,
                duration_ms = %(duration_ms)s,
                started_at = %(started_at)s
            WHERE id = %(id)s
            """).format(TABLE_WORK_ITEMS),
            {
                "id": item.id,
                "status": item.status.value,
                "retry_count": item.retry_count,
                "scroll_id": item.scroll_id,
                "hits": item.hits,
                "results": Json(item.results),
                "output_item_sizes": Json(item.output_item_sizes),
                "total_items_size": item.total_items_size,
                "error_message": item.error_message,
                "duration_ms": item.duration_ms,
                "started_at": item.started_at,
            },
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _row_to_work_item(self, row: Dict[str, Any]) -> WorkItem:
        """Convert database row to WorkItem model."""
        return WorkItem(
            id=row["id"],
            job_id=row["job_id"],
            service_id=row["service_id"],
            status=WorkItemStatus(row["status"]),
            retry_count=row["retry_count"],
            scroll_id=row.get("scroll_id"),
            operation=row.get("operation") or {},
            stac_catalog_location=row.get("stac_catalog_location"),
            hits=row.get("hits"),
            results=row.get("results") or [],
            output_item_sizes=row.get("output_item_sizes") or [],
            total_items_size=row.get("total_items_size"),
            error_message=row.get("error_message"),
            duration_ms=row.get("duration_ms"),
            started_at=row.get("started_at"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


__all__ = ["WorkItemRepository"]
