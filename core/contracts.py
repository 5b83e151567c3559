# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Foundation - Core enums and base contracts
# PURPOSE: Define status enums and base data contracts for the work item engine
# CREATED: 14 OCT 2026
# EXPORTS: WorkItemStatus, JobStatus, WorkItemData
# DEPENDENCIES: enum, pydantic
# ============================================================================
"""
Base contracts for the work item scheduling engine.

These define the minimal identity fields that cross boundaries:
- SQL (PostgreSQL)
- Queue (Azure Service Bus / in-memory queue)
- Python (worker side execution)

Boundary-specific models inherit from these contracts.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# STATUS ENUMS
# ============================================================================

class WorkItemStatus(str, Enum):
    """
    Work item lifecycle states.

    State transitions:
        READY -> RUNNING -> SUCCESSFUL
                         -> FAILED
                         -> CANCELED
              -> CANCELED
        RUNNING -> READY (requeue / retry only)
    """
    READY = "ready"              # Waiting to be claimed by a scheduler
    RUNNING = "running"          # Claimed, dispatched or executing
    SUCCESSFUL = "successful"    # Worker produced outputs
    FAILED = "failed"            # Worker failed and retries are exhausted
    CANCELED = "canceled"        # Canceled by the user or the job

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in (
            WorkItemStatus.SUCCESSFUL,
            WorkItemStatus.FAILED,
            WorkItemStatus.CANCELED,
        )

    def is_active(self) -> bool:
        """Ready or running items are the ones counted in user work."""
        return self in (WorkItemStatus.READY, WorkItemStatus.RUNNING)


class JobStatus(str, Enum):
    """
    Job lifecycle states.

    The job status is owned by the request layer; the engine only reads
    it (paused and canceled jobs are not scheduled).
    """
    ACCEPTED = "accepted"
    RUNNING = "running"
    RUNNING_WITH_ERRORS = "running_with_errors"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    CANCELED = "canceled"
    PAUSED = "paused"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self in (JobStatus.SUCCESSFUL, JobStatus.FAILED, JobStatus.CANCELED)

    def is_schedulable(self) -> bool:
        """Jobs in these states may have their work items dispatched."""
        return self in (
            JobStatus.ACCEPTED,
            JobStatus.RUNNING,
            JobStatus.RUNNING_WITH_ERRORS,
        )


# ============================================================================
# BASE DATA CONTRACTS
# ============================================================================

class WorkItemData(BaseModel):
    """
    Essential work item identity - what gets dispatched to workers.

    Wire names are camelCase (jobID, serviceID) to match the message
    envelopes consumed by existing workers.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., ge=0, description="Unique work item identifier")
    job_id: str = Field(..., max_length=64, alias="jobID")
    service_id: str = Field(..., max_length=255, alias="serviceID")


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "WorkItemStatus",
    "JobStatus",
    "WorkItemData",
]
