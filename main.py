# ============================================================================
# WORK ITEM SCHEDULER - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - FastAPI application entry point
# PURPOSE: Scheduler process with the scheduling and requeue loops
# CREATED: 16 OCT 2026
# ============================================================================
"""
Work Item Scheduler Main Application

FastAPI application that:
1. Serves probes, service metrics and the work pull/report endpoints
2. Runs the WorkScheduler loop (scheduler-request queue -> service queues)
3. Runs the StaleWorkRequeuer loop
4. Manages the database pool and the work queues

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import asyncio
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from __version__ import __version__, BUILD_DATE, EPOCH
from api.routes import router, set_services
from core.config import get_defaults
from core.logging import ComponentType, configure_logging, get_logger
from infrastructure.queue_factory import create_queue_factory
from repositories import WorkItemStore, close_pool, init_pool
from scheduler import StaleWorkRequeuer, WorkDispatcher, WorkItemPoller, WorkScheduler
from worker.reporter import ResultReporter

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__, ComponentType.SCHEDULER)


def _env_enabled(name: str) -> bool:
    return os.environ.get(name, "true").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Initializes services on startup, cleans up on shutdown.
    """
    defaults = get_defaults()
    logger.info(f"Starting Work Item Scheduler v{__version__} (Epoch {EPOCH}, Build {BUILD_DATE})")

    # Optional: Bootstrap schema on startup (for development)
    if os.environ.get("AUTO_BOOTSTRAP_SCHEMA", "").lower() == "true":
        logger.info("Auto-bootstrap enabled, deploying schema...")
        try:
            from core.schema import deploy_schema
            await asyncio.to_thread(deploy_schema)
        except Exception as e:
            logger.warning(f"Schema bootstrap failed (may already exist): {e}")

    pool = await init_pool()
    store = WorkItemStore(pool)
    queues = create_queue_factory(defaults.queues)

    poller = WorkItemPoller(store, cmr_max_page_size=defaults.scheduling.cmr_max_page_size)
    scheduler = WorkScheduler(
        queues,
        poller,
        batch_size=defaults.scheduling.batch_size,
        receive_count=defaults.queues.scheduler_receive_count,
        interval_seconds=defaults.scheduling.scheduler_interval_seconds,
    )
    requeuer = StaleWorkRequeuer(
        store,
        max_retries=defaults.scheduling.max_retries,
        stale_running_seconds=defaults.scheduling.stale_running_seconds,
        interval_seconds=defaults.scheduling.requeue_interval_seconds,
    )

    set_services(
        store=store,
        dispatcher=WorkDispatcher(queues, store),
        reporter=ResultReporter(store, max_retries=defaults.scheduling.max_retries),
    )

    stop_event = asyncio.Event()
    loops = []
    if _env_enabled("SCHEDULER_ENABLED"):
        loops.append(asyncio.create_task(scheduler.run(stop_event)))
    if _env_enabled("REQUEUE_ENABLED"):
        loops.append(asyncio.create_task(requeuer.run(stop_event)))
    logger.info(f"Started {len(loops)} background loops")

    yield

    # Shutdown
    logger.info("Shutting down Work Item Scheduler...")
    stop_event.set()
    if loops:
        try:
            await asyncio.wait_for(
                asyncio.gather(*loops, return_exceptions=True),
                timeout=defaults.timeouts.shutdown_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Shutdown timeout - cancelling background loops")
            for task in loops:
                task.cancel()

    await queues.close()
    await close_pool()

    logger.info("Work Item Scheduler stopped")


# Create FastAPI app
app = FastAPI(
    title="Work Item Scheduler",
    description="Fair scheduling and dispatch of work items to service workers",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(router)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Work Item Scheduler",
        "version": __version__,
        "epoch": EPOCH,
        "build_date": BUILD_DATE,
        "status": "running",
        "docs": "/docs",
    }


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
