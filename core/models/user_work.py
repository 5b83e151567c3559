# ============================================================================
# USER WORK MODEL
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core model - Ready/running tallies per (user, job, service)
# PURPOSE: Drive the fairness ordering without scanning work_items
# CREATED: 15 OCT 2026
# EXPORTS: UserWork
# DEPENDENCIES: pydantic
# ============================================================================
"""
UserWork Model

Per (username, jobID, serviceID) tally of READY and RUNNING work items.

ready_count + running_count is expected to equal the number of
non-terminal work items for the tuple. The counters are only changed in
the transaction that changes a work item status. Drift across
transactions is repaired by recomputing from work_items.
"""

from datetime import datetime, timezone
from typing import ClassVar, Dict, List

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserWork(BaseModel):
    """
    Maps to: workapp.user_work table
    """
    model_config = ConfigDict(populate_by_name=True)

    __sql_table__: ClassVar[str] = "user_work"
    __sql_schema__: ClassVar[str] = "workapp"
    __sql_primary_key__: ClassVar[List[str]] = ["job_id", "service_id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {
        "job_id": "workapp.jobs(job_id)",
    }
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_user_work_service_user", ["service_id", "username"]),
        ("idx_user_work_ready", ["service_id", "last_worked"], "ready_count > 0"),
    ]

    username: str = Field(..., max_length=255)
    job_id: str = Field(..., max_length=64, alias="jobID")
    service_id: str = Field(..., max_length=255, alias="serviceID")
    ready_count: int = Field(default=0, ge=0, alias="readyCount")
    running_count: int = Field(default=0, ge=0, alias="runningCount")

    # Fairness tie-breaker: least recently worked goes first
    last_worked: datetime = Field(default_factory=_utcnow, alias="lastWorked")

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def active_count(self) -> int:
        return self.ready_count + self.running_count


__all__ = ["UserWork"]
