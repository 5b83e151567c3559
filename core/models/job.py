# ============================================================================
# JOB MODEL
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core model - User request
# PURPOSE: Identify a user request that owns work items
# CREATED: 14 OCT 2026
# EXPORTS: Job
# DEPENDENCIES: pydantic
# ============================================================================
"""
Job Model

A Job represents one user request. Its aggregate status is owned by the
request layer; the scheduling engine reads the owner (for fairness) and
numInputGranules (for paging the query-cmr service).
"""

from datetime import datetime, timezone
from typing import ClassVar, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from core.contracts import JobStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Job(BaseModel):
    """
    A user request.

    Maps to: workapp.jobs table
    """
    model_config = ConfigDict(populate_by_name=True)

    # =========================================================================
    # SQL DDL METADATA (Used by PydanticToSQL generator)
    # =========================================================================
    __sql_table__: ClassVar[str] = "jobs"
    __sql_schema__: ClassVar[str] = "workapp"
    __sql_primary_key__: ClassVar[List[str]] = ["job_id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {}
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_jobs_username", ["username"]),
        ("idx_jobs_status", ["status"]),
    ]

    job_id: str = Field(..., max_length=64, alias="jobID")
    username: str = Field(..., max_length=255)
    status: JobStatus = Field(default=JobStatus.ACCEPTED)
    num_input_granules: int = Field(default=0, ge=0, alias="numInputGranules")

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_schedulable(self) -> bool:
        return self.status.is_schedulable()


__all__ = ["Job"]
