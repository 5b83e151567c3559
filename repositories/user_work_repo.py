# ============================================================================
# USER WORK REPOSITORY
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Ready/running tallies and fairness queries
# PURPOSE: Database access for user_work table
# CREATED: 15 OCT 2026
# ============================================================================
"""
User Work Repository

Holds the fairness queries (which user, which job goes next) and the
ready/running counters. Bound to one connection so count changes commit
with the work item status change that caused them.

Fairness policy:
    user   - fewest RUNNING items for the service, then least recently worked
    job    - least recently worked job of that user; picking it stamps
             last_worked so the user's other jobs go next
    batch  - least recently worked jobs with ready work
"""

import logging
from typing import List, Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row

from core.contracts import JobStatus
from core.models import UserWork
from .database import TABLE_JOBS, TABLE_USER_WORK, TABLE_WORK_ITEMS

logger = logging.getLogger(__name__)

_SCHEDULABLE = sql.SQL(", ").join(
    sql.Literal(s.value) for s in JobStatus if s.is_schedulable()
)


class UserWorkRepository:
    """Repository for UserWork rows."""

    def __init__(self, conn: AsyncConnection):
        self.conn = conn

    # =========================================================================
    # FAIRNESS QUERIES
    # =========================================================================

    async def next_username(self, service_id: str) -> Optional[str]:
        """User with ready work for the service and the lightest running load."""
        async with self.conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                sql.SQL("""
                SELECT uw.username
                FROM {user_work} uw
                JOIN {jobs} j ON j.job_id = uw.job_id
                WHERE uw.service_id = %s
                  AND j.status IN ({schedulable})
                GROUP BY uw.username
                HAVING SUM(uw.ready_count) > 0
                ORDER BY SUM(uw.running_count) ASC, MAX(uw.last_worked) ASC
                LIMIT 1
                """).format(
                    user_work=TABLE_USER_WORK,
                    jobs=TABLE_JOBS,
                    schedulable=_SCHEDULABLE,
                ),
                (service_id,),
            )
            row = await cur.fetchone()
            return row["username"] if row else None

    async def next_job_id_for_user(self, service_id: str, username: str) -> Optional[str]:
        """Least recently worked job for the user; stamps its last_worked."""
        async with self.conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                sql.SQL("""
                SELECT uw.job_id
                FROM {user_work} uw
                JOIN {jobs} j ON j.job_id = uw.job_id
                WHERE uw.service_id = %s
                  AND uw.username = %s
                  AND uw.ready_count > 0
                  AND j.status IN ({schedulable})
                ORDER BY uw.last_worked ASC
                LIMIT 1
                FOR UPDATE OF uw SKIP LOCKED
                """).format(
                    user_work=TABLE_USER_WORK,
                    jobs=TABLE_JOBS,
                    schedulable=_SCHEDULABLE,
                ),
                (service_id, username),
            )
            row = await cur.fetchone()

        if row is None:
            return None

        job_id = row["job_id"]
        await self.conn.execute(
            sql.SQL("""
            UPDATE {} SET last_worked = NOW()
            WHERE job_id = %s AND service_id = %s
            """).format(TABLE_USER_WORK),
            (job_id, service_id),
        )
        return job_id

    async def next_job_ids(self, service_id: str, limit: int) -> List[str]:
        """Up to ``limit`` distinct jobs with ready work, least recently worked first."""
        async with self.conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                sql.SQL("""
                SELECT uw.job_id
                FROM {user_work} uw
                JOIN {jobs} j ON j.job_id = uw.job_id
                WHERE uw.service_id = %s
                  AND uw.ready_count > 0
                  AND j.status IN ({schedulable})
                ORDER BY uw.last_worked ASC
                LIMIT %s
                """).format(
                    user_work=TABLE_USER_WORK,
                    jobs=TABLE_JOBS,
                    schedulable=_SCHEDULABLE,
                ),
                (service_id, limit),
            )
            rows = await cur.fetchall()
            return [row["job_id"] for row in rows]

    async def ready_count_for_service(self, service_id: str) -> int:
        """Sum of ready counts across schedulable jobs for a service."""
        async with self.conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                sql.SQL("""
                SELECT COALESCE(SUM(uw.ready_count), 0) AS ready
                FROM {user_work} uw
                JOIN {jobs} j ON j.job_id = uw.job_id
                WHERE uw.service_id = %s
                  AND j.status IN ({schedulable})
                """).format(
                    user_work=TABLE_USER_WORK,
                    jobs=TABLE_JOBS,
                    schedulable=_SCHEDULABLE,
                ),
                (service_id,),
            )
            row = await cur.fetchone()
            return int(row["ready"]) if row else 0

    async def get(self, job_id: str, service_id: str) -> Optional[UserWork]:
        async with self.conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                sql.SQL("SELECT * FROM {} WHERE job_id = %s AND service_id = %s").format(
                    TABLE_USER_WORK
                ),
                (job_id, service_id),
            )
            row = await cur.fetchone()
            return UserWork(**row) if row else None

    # =========================================================================
    # COUNTERS
    # =========================================================================

    async def adjust_counts(
        self,
        job_id: str,
        service_id: str,
        ready_delta: int = 0,
        running_delta: int = 0,
    ) -> None:
        """Apply deltas to the counters, clamping at zero."""
        if ready_delta == 0 and running_delta == 0:
            return
        await self.conn.execute(
            sql.SQL("""
            UPDATE {} SET
                ready_count = GREATEST(0, ready_count + %s),
                running_count = GREATEST(0, running_count + %s)
            WHERE job_id = %s AND service_id = %s
            """).format(TABLE_USER_WORK),
            (ready_delta, running_delta, job_id, service_id),
        )

    async def add_ready(self, username: str, job_id: str, service_id: str, count: int) -> None:
        """Add newly created READY items, creating the row if needed."""
        await self.conn.execute(
            sql.SQL("""
            INSERT INTO {table} (username, job_id, service_id, ready_count, running_count, last_worked)
            VALUES (%s, %s, %s, %s, 0, NOW())
            ON CONFLICT (job_id, service_id) DO UPDATE
            SET ready_count = {table}.ready_count + EXCLUDED.ready_count
            """).format(table=TABLE_USER_WORK),
            (username, job_id, service_id, count),
        )

    async def recalculate_counts(self, job_id: str) -> None:
        """
        Rebuild ready/running counts for a job from work_items.

        Rows for services without active items are zeroed; missing rows are
        created.
        """
        await self.conn.execute(
            sql.SQL("UPDATE {} SET ready_count = 0, running_count = 0 WHERE job_id = %s").format(
                TABLE_USER_WORK
            ),
            (job_id,),
        )
        await self.conn.execute(
            sql.SQL("""
            INSERT INTO {user_work} (username, job_id, service_id, ready_count, running_count, last_worked)
            SELECT j.username, w.job_id, w.service_id,
                   COUNT(*) FILTER (WHERE w.status = 'ready'),
                   COUNT(*) FILTER (WHERE w.status = 'running'),
                   NOW()
            FROM {work_items} w
            JOIN {jobs} j ON j.job_id = w.job_id
            WHERE w.job_id = %s
            GROUP BY j.username, w.job_id, w.service_id
            ON CONFLICT (job_id, service_id) DO UPDATE SET
                ready_count = EXCLUDED.ready_count,
                running_count = EXCLUDED.running_count
            """).format(
                user_work=TABLE_USER_WORK,
                work_items=TABLE_WORK_ITEMS,
                jobs=TABLE_JOBS,
            ),
            (job_id,),
        )
        logger.info(f"Recalculated user_work counts for job {job_id}")


__all__ = ["UserWorkRepository"]
