# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - FastAPI routes
# PURPOSE: HTTP surface of the scheduler process
# CREATED: 16 OCT 2026
# ============================================================================
"""
API Module

FastAPI routes for the scheduler process.
"""

from .routes import router, set_services
from .schemas import (
    ServiceMetricsResponse,
    WorkItemUpdateResponse,
    JobCancelResponse,
)

__all__ = [
    "router",
    "set_services",
    "ServiceMetricsResponse",
    "WorkItemUpdateResponse",
    "JobCancelResponse",
]
