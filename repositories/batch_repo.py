# ============================================================================
# BATCH REPOSITORY
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Batch numbering
# PURPOSE: Database access for batches table
# CREATED: 15 OCT 2026
# ============================================================================
"""
Batch Repository

batch_id is allocated by reading the current maximum for (job, service)
and adding one, inside the caller's transaction.
"""

import logging
from typing import Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row

from core.models import Batch
from .database import TABLE_BATCHES

logger = logging.getLogger(__name__)


class BatchRepository:
    """Repository for Batch entities."""

    def __init__(self, conn: AsyncConnection):
        self.conn = conn

    async def highest(self, job_id: str, service_id: str) -> Optional[Batch]:
        """
        Batch with the highest batch_id for (job, service).

        Returns:
            Batch or None if the pair has no batches yet
        """
        async with self.conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                sql.SQL("""
                SELECT * FROM {}
                WHERE job_id = %s AND service_id = %s
                ORDER BY batch_id DESC
                LIMIT 1
                """).format(TABLE_BATCHES),
                (job_id, service_id),
            )
            row = await cur.fetchone()
            return Batch(**row) if row else None

    async def save(self, batch: Batch) -> Batch:
        await self.conn.execute(
            sql.SQL("""
            INSERT INTO {} (job_id, service_id, batch_id)
            VALUES (%s, %s, %s)
            """).format(TABLE_BATCHES),
            (batch.job_id, batch.service_id, batch.batch_id),
        )
        logger.debug(f"Saved batch {batch.batch_id} for job {batch.job_id}")
        return batch


__all__ = ["BatchRepository"]
