# ============================================================================
# BATCH MODEL
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core model - Numbered output groups for aggregating services
# PURPOSE: Preserve creation order of batches per (job, service)
# CREATED: 15 OCT 2026
# EXPORTS: Batch
# DEPENDENCIES: pydantic
# ============================================================================
"""
Batch Model

A Batch groups the outputs an aggregating service will consume for one
(jobID, serviceID) pair. batchID is a strictly increasing sequence number
per pair, allocated as highest existing batchID + 1.

is_processed is an in-memory marker used while assembling batches and is
never written to the database.
"""

from datetime import datetime, timezone
from typing import ClassVar, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class Batch(BaseModel):
    """
    Maps to: workapp.batches table
    """
    model_config = ConfigDict(populate_by_name=True)

    __sql_table__: ClassVar[str] = "batches"
    __sql_schema__: ClassVar[str] = "workapp"
    __sql_primary_key__: ClassVar[List[str]] = ["job_id", "service_id", "batch_id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {
        "job_id": "workapp.jobs(job_id)",
    }
    __sql_indexes__: ClassVar[List[tuple]] = []

    job_id: str = Field(..., max_length=64, alias="jobID")
    service_id: str = Field(..., max_length=255, alias="serviceID")
    batch_id: int = Field(..., ge=1, alias="batchID")

    is_processed: bool = Field(default=False, exclude=True, alias="isProcessed")

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = ["Batch"]
