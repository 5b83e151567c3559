# ============================================================================
# SCHEDULER MODULE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Work selection and dispatch
# PURPOSE: Poller, scheduler loop, dispatcher and stale-work recovery
# CREATED: 16 OCT 2026
# ============================================================================
"""
Scheduler Module

- poller: fair selection of READY work items (single and batch)
- work_scheduler: scheduler-request queue -> service queues
- dispatcher: service queue -> worker ("get work for service S")
- requeuer: recovery of RUNNING items nobody is working on
"""

from scheduler.poller import WorkItemPoller, calculate_query_cmr_limit, QUERY_CMR_SERVICE_REGEX
from scheduler.work_scheduler import WorkScheduler
from scheduler.dispatcher import WorkDispatcher
from scheduler.requeuer import StaleWorkRequeuer

__all__ = [
    "WorkItemPoller",
    "calculate_query_cmr_limit",
    "QUERY_CMR_SERVICE_REGEX",
    "WorkScheduler",
    "WorkDispatcher",
    "StaleWorkRequeuer",
]
