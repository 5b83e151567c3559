# ============================================================================
# WORK ITEM MODEL
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core model - Schedulable unit of work
# PURPOSE: Track one unit of work from READY through a terminal state
# CREATED: 14 OCT 2026
# EXPORTS: WorkItem
# DEPENDENCIES: pydantic
# ============================================================================
"""
WorkItem Model

A WorkItem is one schedulable unit of work: run the container identified
by serviceID against one operation for one job.

Lifecycle:
    1. Created READY by upstream planning
    2. READY -> RUNNING when claimed by a poller
    3. RUNNING -> SUCCESSFUL / FAILED when the worker reports
    4. Any non-terminal state -> CANCELED when the job is canceled
    5. RUNNING -> READY only through prepare_retry() (requeue)

The output catalog location and the log location are derived from the
artifact root, the job ID and the item ID; they are not stored.
"""

from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.contracts import WorkItemData, WorkItemStatus
from core.errors import InvalidStatusTransitionError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


_ALLOWED_TRANSITIONS = {
    WorkItemStatus.READY: {WorkItemStatus.RUNNING, WorkItemStatus.CANCELED},
    WorkItemStatus.RUNNING: {
        WorkItemStatus.SUCCESSFUL,
        WorkItemStatus.FAILED,
        WorkItemStatus.CANCELED,
        WorkItemStatus.READY,
    },
    WorkItemStatus.SUCCESSFUL: set(),
    WorkItemStatus.FAILED: set(),
    WorkItemStatus.CANCELED: set(),
}


class WorkItem(WorkItemData):
    """
    One schedulable unit of work.

    Maps to: workapp.work_items table
    """
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    # =========================================================================
    # SQL DDL METADATA (Used by PydanticToSQL generator)
    # =========================================================================
    __sql_table__: ClassVar[str] = "work_items"
    __sql_schema__: ClassVar[str] = "workapp"
    __sql_primary_key__: ClassVar[List[str]] = ["id"]
    __sql_serial_columns__: ClassVar[List[str]] = ["id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {
        "job_id": "workapp.jobs(job_id)",
    }
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_work_items_job_service_status", ["job_id", "service_id", "status"]),
        ("idx_work_items_service_status", ["service_id", "status"]),
        ("idx_work_items_running_started", ["started_at"], "status = 'running'"),
    ]

    id: Optional[int] = Field(default=None, ge=0)

    status: WorkItemStatus = Field(default=WorkItemStatus.READY)
    retry_count: int = Field(default=0, ge=0)

    # Pagination cursor handed from one query-cmr item to the next
    scroll_id: Optional[str] = Field(default=None, max_length=4096, alias="scrollID")

    # Opaque request payload passed to the worker
    operation: Dict[str, Any] = Field(default_factory=dict)

    # Input catalog (output of the previous step)
    stac_catalog_location: Optional[str] = Field(default=None, max_length=4096)

    # Outcome
    hits: Optional[int] = None
    results: List[str] = Field(default_factory=list)
    output_item_sizes: List[float] = Field(default_factory=list)
    total_items_size: Optional[float] = None
    error_message: Optional[str] = Field(default=None, max_length=4096)
    duration_ms: Optional[int] = None

    # Timestamps
    started_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    # =========================================================================
    # DERIVED LOCATIONS
    # =========================================================================

    def stac_location(self, artifact_root: str) -> str:
        """Directory the worker writes its output catalogs into."""
        return f"{artifact_root.rstrip('/')}/{self.job_id}/{self.id}/outputs/"

    def logs_location(self, artifact_root: str) -> str:
        """Location of the persisted log array for this item."""
        return f"{artifact_root.rstrip('/')}/{self.job_id}/{self.id}/logs.json"

    # =========================================================================
    # STATUS TRANSITIONS
    # =========================================================================

    def can_transition_to(self, new_status: WorkItemStatus) -> bool:
        """No-op transitions are always allowed."""
        if self.status == new_status:
            return True
        return new_status in _ALLOWED_TRANSITIONS.get(self.status, set())

    def _transition(self, new_status: WorkItemStatus) -> None:
        if not self.can_transition_to(new_status):
            raise InvalidStatusTransitionError(
                self.id if self.id is not None else -1,
                self.status.value,
                new_status.value,
            )
        self.status = new_status
        self.updated_at = _utcnow()

    def mark_running(self) -> None:
        self._transition(WorkItemStatus.RUNNING)
        self.started_at = _utcnow()

    def mark_successful(
        self,
        results: List[str],
        output_item_sizes: Optional[List[float]] = None,
        total_items_size: Optional[float] = None,
        scroll_id: Optional[str] = None,
    ) -> None:
        self._transition(WorkItemStatus.SUCCESSFUL)
        self.results = list(results)
        self.output_item_sizes = list(output_item_sizes or [])
        self.total_items_size = total_items_size
        if scroll_id is not None:
            self.scroll_id = scroll_id
        self._stamp_duration()

    def mark_failed(self, error_message: str) -> None:
        self._transition(WorkItemStatus.FAILED)
        self.error_message = error_message[:4096]
        self._stamp_duration()

    def mark_canceled(self) -> None:
        self._transition(WorkItemStatus.CANCELED)

    def prepare_retry(self) -> None:
        """
        Put a RUNNING item back to READY for another attempt.

        Raises:
            InvalidStatusTransitionError: If the item is not RUNNING
        """
        if self.status != WorkItemStatus.RUNNING:
            raise InvalidStatusTransitionError(
                self.id if self.id is not None else -1,
                self.status.value,
                WorkItemStatus.READY.value,
            )
        self._transition(WorkItemStatus.READY)
        self.retry_count += 1
        self.started_at = None

    def _stamp_duration(self) -> None:
        if self.started_at is not None:
            self.duration_ms = int((_utcnow() - self.started_at).total_seconds() * 1000)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal()


__all__ = ["WorkItem"]
