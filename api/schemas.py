# ============================================================================
# API SCHEMAS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Request/Response schemas
# PURPOSE: Pydantic models for the scheduler process endpoints
# CREATED: 16 OCT 2026
# ============================================================================
"""
API Schemas

Request and response models for the API. Wire names are camelCase.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from core.contracts import WorkItemStatus


class ServiceMetricsResponse(BaseModel):
    """Ready work for a service (autoscaling input)."""
    model_config = ConfigDict(populate_by_name=True)

    available_work_items: int = Field(..., ge=0, alias="availableWorkItems")


class WorkItemUpdateResponse(BaseModel):
    """Outcome of recording a work item result."""
    model_config = ConfigDict(populate_by_name=True)

    work_item_id: int = Field(..., alias="workItemID")
    status: Optional[WorkItemStatus] = Field(
        default=None,
        description="New status; null when the result was discarded",
    )


class JobCancelResponse(BaseModel):
    """Result of canceling a job's work items."""
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobID")
    canceled: int = Field(..., ge=0)


__all__ = [
    "ServiceMetricsResponse",
    "WorkItemUpdateResponse",
    "JobCancelResponse",
]
