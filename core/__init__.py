# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core module initialization
# PURPOSE: Export core contracts, models, and errors
# CREATED: 14 OCT 2026
# ============================================================================

from core.contracts import JobStatus, WorkItemStatus
from core.errors import (
    WorkSchedulerError,
    QueueNotConfiguredError,
    InvalidStatusTransitionError,
)
from core.models import Job, WorkItem, Batch, UserWork, WorkItemEnvelope

__all__ = [
    # Enums
    "JobStatus",
    "WorkItemStatus",
    # Errors
    "WorkSchedulerError",
    "QueueNotConfiguredError",
    "InvalidStatusTransitionError",
    # Models
    "Job",
    "WorkItem",
    "Batch",
    "UserWork",
    "WorkItemEnvelope",
]
