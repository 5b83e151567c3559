# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Data access layer
# PURPOSE: PostgreSQL access for jobs, work items, batches, user work
# CREATED: 15 OCT 2026
# ============================================================================

from .database import DatabasePool, init_pool, close_pool, get_connection_string
from .job_repo import JobRepository
from .work_item_repo import WorkItemRepository
from .user_work_repo import UserWorkRepository
from .batch_repo import BatchRepository
from .work_item_store import WorkItemStore, WorkItemTransaction, count_deltas

__all__ = [
    "DatabasePool",
    "init_pool",
    "close_pool",
    "get_connection_string",
    "JobRepository",
    "WorkItemRepository",
    "UserWorkRepository",
    "BatchRepository",
    "WorkItemStore",
    "WorkItemTransaction",
    "count_deltas",
]
