# ============================================================================
# API ROUTES
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - FastAPI route definitions
# PURPOSE: Probes, service metrics, and the work item pull/report endpoints
# CREATED: 16 OCT 2026
# ============================================================================
"""
API Routes

FastAPI routes for the scheduler process.

    GET  /livez
    GET  /readyz                        database reachable
    GET  /service/metrics?serviceID=    {"availableWorkItems": n}
    GET  /service/work?serviceID=       next dispatch envelope, 204 if none
    PUT  /service/work/{id}             record a ServiceResponse
    POST /jobs/{jobID}/cancel           cancel the job's open work items
"""

import logging

from fastapi import APIRouter, HTTPException, Query, Response
from fastapi.responses import JSONResponse

from core.errors import QueueNotConfiguredError
from worker.contracts import ServiceResponse
from .schemas import JobCancelResponse, ServiceMetricsResponse, WorkItemUpdateResponse

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# These will be set by the main app at startup

_store = None
_dispatcher = None
_reporter = None


def set_services(store, dispatcher, reporter):
    """Set service instances for dependency injection."""
    global _store, _dispatcher, _reporter
    _store = store
    _dispatcher = dispatcher
    _reporter = reporter


def get_store():
    if _store is None:
        raise HTTPException(500, "Services not initialized")
    return _store


# ============================================================================
# PROBES
# ============================================================================

@router.get("/livez", tags=["Health"])
async def livez():
    return {"status": "ok"}


@router.get("/readyz", tags=["Health"])
async def readyz():
    try:
        await get_store().ping()
    except HTTPException:
        raise
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        return JSONResponse({"status": "unavailable", "error": str(e)}, status_code=503)
    return {"status": "ready"}


# ============================================================================
# SERVICE ENDPOINTS
# ============================================================================

@router.get(
    "/service/metrics",
    response_model=ServiceMetricsResponse,
    response_model_by_alias=True,
    tags=["Service"],
)
async def service_metrics(service_id: str = Query(..., alias="serviceID")):
    """Ready work items for a service, summed over its user work rows."""
    async with get_store().transaction() as tx:
        count = await tx.ready_count_for_service(service_id)
    return ServiceMetricsResponse(available_work_items=count)


@router.get("/service/work", tags=["Service"])
async def get_work(service_id: str = Query(..., alias="serviceID")):
    """Next work item for a service, or 204 when there is none."""
    if _dispatcher is None:
        raise HTTPException(500, "Services not initialized")
    try:
        envelope = await _dispatcher.get_work(service_id)
    except QueueNotConfiguredError as e:
        logger.error(str(e))
        raise HTTPException(500, str(e))

    if envelope is None:
        return Response(status_code=204)
    return JSONResponse(envelope.model_dump(mode="json", by_alias=True, exclude_none=True))


@router.put(
    "/service/work/{work_item_id}",
    response_model=WorkItemUpdateResponse,
    response_model_by_alias=True,
    tags=["Service"],
)
async def update_work_item(work_item_id: int, response: ServiceResponse):
    """Record the result of running a work item."""
    if _reporter is None:
        raise HTTPException(500, "Services not initialized")

    async with get_store().transaction() as tx:
        item = await tx.get_work_item(work_item_id)
    if item is None:
        raise HTTPException(404, f"Work item {work_item_id} not found")

    status = await _reporter.report(item, response)
    return WorkItemUpdateResponse(work_item_id=work_item_id, status=status)


@router.post(
    "/jobs/{job_id}/cancel",
    response_model=JobCancelResponse,
    response_model_by_alias=True,
    tags=["Jobs"],
)
async def cancel_job(job_id: str):
    """Cancel every READY or RUNNING work item of a job."""
    async with get_store().transaction() as tx:
        job = await tx.get_job(job_id)
        if job is None:
            raise HTTPException(404, f"Job {job_id} not found")
        canceled = await tx.cancel_job_work_items(job_id)
    logger.info(f"Canceled {canceled} work items for job {job_id}")
    return JobCancelResponse(job_id=job_id, canceled=canceled)


__all__ = ["router", "set_services"]
