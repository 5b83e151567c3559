# ============================================================================
# ENGINE EXCEPTIONS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Foundation - Exception hierarchy
# PURPOSE: Errors that propagate out of the scheduling engine
# CREATED: 14 OCT 2026
# ============================================================================
"""
Engine Exceptions

Only configuration problems and programming errors are raised. Transient
store failures and execution failures are reported as values (empty poll
results, ServiceResponse.error) and never reach these classes.
"""

from typing import Optional


class WorkSchedulerError(Exception):
    """Base class for engine errors."""


class QueueNotConfiguredError(WorkSchedulerError):
    """No queue is configured for a service. Requires operator attention."""

    def __init__(self, service_id: str, queue_url: Optional[str] = None):
        self.service_id = service_id
        self.queue_url = queue_url
        target = queue_url or service_id
        super().__init__(f"No queue found for URL {target}")


class InvalidStatusTransitionError(WorkSchedulerError):
    """A work item status change violates the lifecycle rules."""

    def __init__(self, work_item_id: int, current: str, requested: str):
        self.work_item_id = work_item_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Work item {work_item_id} cannot move from {current} to {requested}"
        )


__all__ = [
    "WorkSchedulerError",
    "QueueNotConfiguredError",
    "InvalidStatusTransitionError",
]
