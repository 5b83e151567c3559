# ============================================================================
# JOB REPOSITORY
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Job lookups
# PURPOSE: Database access for jobs table
# CREATED: 15 OCT 2026
# ============================================================================
"""
Job Repository

Jobs are written by the request layer. The engine reads them for the
owning username and numInputGranules, and creates them when seeding.
"""

import logging
from typing import Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row

from core.contracts import JobStatus
from core.models import Job
from .database import TABLE_JOBS

logger = logging.getLogger(__name__)


class JobRepository:
    """Repository for Job entities."""

    def __init__(self, conn: AsyncConnection):
        self.conn = conn

    async def create(self, job: Job) -> Job:
        await self.conn.execute(
            sql.SQL("""
            INSERT INTO {} (job_id, username, status, num_input_granules)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (job_id) DO NOTHING
            """).format(TABLE_JOBS),
            (job.job_id, job.username, job.status.value, job.num_input_granules),
        )
        logger.info(f"Job created: {job.job_id} user={job.username}")
        return job

    async def get(self, job_id: str) -> Optional[Job]:
        async with self.conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                sql.SQL("SELECT * FROM {} WHERE job_id = %s").format(TABLE_JOBS),
                (job_id,),
            )
            row = await cur.fetchone()
            if row is None:
                return None
            return Job(
                job_id=row["job_id"],
                username=row["username"],
                status=JobStatus(row["status"]),
                num_input_granules=row["num_input_granules"],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )


__all__ = ["JobRepository"]
