# ============================================================================
# WORKER MAIN ENTRY POINT
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Worker process entry point
# PURPOSE: Start a worker for one service image
# CREATED: 16 OCT 2026
# ============================================================================
"""
Worker Main Entry Point

Starts a worker process that:
1. Serves /livez, /readyz and /metrics (aiohttp)
2. Opens the database pool and the work queues
3. Gets, runs and reports work items for SERVICE_ID until shutdown

Usage:
    python -m worker.main

Environment Variables:
    SERVICE_ID: Image of the service this worker runs
    INVOCATION_ARGS: Command that starts the service (newline or space separated)
    MY_POD_NAME / WORKER_NAMESPACE / WORKER_CONTAINER: Where the service runs
    WORKER_PORT: Port of the query-cmr server (query-cmr workers only)
    BACKEND_URL: Scheduler process base URL (metrics)
    ARTIFACT_ROOT: Root URL for outputs and logs
    WORKER_TIMEOUT_SECONDS: Wall-clock bound per work item
    MAX_CONCURRENT_WORK: Work items run at once
    DATABASE_URL: PostgreSQL connection
    QUEUE_BACKEND: "servicebus" or "memory"
    PORT: Health/metrics server port
"""

import asyncio
import os
import sys
from typing import Optional

import httpx
from aiohttp import web

from __version__ import __version__
from core.config import get_defaults
from core.logging import ComponentType, configure_logging, get_logger
from infrastructure.queue_factory import create_queue_factory
from repositories import WorkItemStore, close_pool, init_pool
from scheduler.dispatcher import WorkDispatcher
from scheduler.poller import QUERY_CMR_SERVICE_REGEX
from worker.consumer import WorkConsumer, install_signal_handlers
from worker.contracts import WorkerConfig
from worker.exec_client import KubectlExec
from worker.executor import ServiceExecutor
from worker.metrics import fetch_ready_metric
from worker.query_cmr import QueryCmrExecutor
from worker.reporter import ResultReporter

logger = get_logger(__name__, ComponentType.WORKER)

CONFIG_KEY = web.AppKey("config", WorkerConfig)
HTTP_CLIENT_KEY = web.AppKey("http_client", httpx.AsyncClient)
STATE_KEY = web.AppKey("state", dict)


# ============================================================================
# HEALTH & METRICS SERVER
# ============================================================================

async def livez_handler(request: web.Request) -> web.Response:
    return web.Response(text="OK")


async def readyz_handler(request: web.Request) -> web.Response:
    consumer: Optional[WorkConsumer] = request.app[STATE_KEY].get("consumer")
    if consumer is None or not consumer.is_running:
        return web.json_response({"status": "starting", "version": __version__}, status=503)
    return web.json_response({"status": "ready", "version": __version__, "stats": consumer.stats})


async def metrics_handler(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    try:
        body = await fetch_ready_metric(request.app[HTTP_CLIENT_KEY], config.backend_url, config.service_id)
    except (httpx.HTTPError, KeyError, ValueError) as e:
        logger.error(f"Failed to query the scheduler for service metrics: {e}")
        raise web.HTTPBadGateway(text="Failed to query the scheduler for service metrics")
    return web.Response(text=body, content_type="text/plain")


def create_health_app(config: WorkerConfig, http_client: httpx.AsyncClient) -> web.Application:
    app = web.Application()
    app[CONFIG_KEY] = config
    app[HTTP_CLIENT_KEY] = http_client
    app[STATE_KEY] = {"consumer": None}
    app.router.add_get("/livez", livez_handler)
    app.router.add_get("/readyz", readyz_handler)
    app.router.add_get("/metrics", metrics_handler)
    return app


async def start_health_server(app: web.Application, port: int) -> web.AppRunner:
    """Start the HTTP server for probes and metrics."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()
    logger.info(f"Health server started on port {port}")
    return runner


# ============================================================================
# MAIN
# ============================================================================

async def main() -> None:
    """Main entry point."""
    configure_logging(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
    )

    config = WorkerConfig.from_env()
    defaults = get_defaults()

    logger.info("=" * 60)
    logger.info(f"Work Item Worker Starting v{__version__}")
    logger.info("=" * 60)
    logger.info(f"Worker ID: {config.worker_id}")
    logger.info(f"Service: {config.service_id}")
    logger.info(f"Max Concurrent: {config.max_concurrent_work}")

    if not config.service_id:
        logger.error("No service configured. Set SERVICE_ID")
        sys.exit(1)

    async with httpx.AsyncClient() as http_client:
        app = create_health_app(config, http_client)
        health_runner = await start_health_server(app, config.health_port)

        pool = await init_pool(min_size=1, max_size=max(2, config.max_concurrent_work + 1),
                               connection_string=config.database_url)
        store = WorkItemStore(pool)
        queues = create_queue_factory(defaults.queues)

        query_cmr = None
        if QUERY_CMR_SERVICE_REGEX.search(config.service_id):
            query_cmr = QueryCmrExecutor(
                config.worker_port,
                config.artifact_root,
                defaults.timeouts.query_cmr_timeout_seconds,
            )

        consumer = WorkConsumer(
            config,
            dispatcher=WorkDispatcher(queues, store),
            executor=ServiceExecutor(
                config.service_id,
                KubectlExec(config.pod_name, config.container, config.namespace),
                config.artifact_root,
                timeout_seconds=config.worker_timeout_seconds,
                invocation_args=config.invocation_args,
            ),
            reporter=ResultReporter(store, max_retries=defaults.scheduling.max_retries),
            query_cmr=query_cmr,
        )
        app[STATE_KEY]["consumer"] = consumer
        install_signal_handlers(consumer)

        try:
            await consumer.run()
        except Exception as e:
            logger.exception(f"Worker failed: {e}")
            raise
        finally:
            if query_cmr is not None:
                await query_cmr.close()
            await queues.close()
            await close_pool()
            await health_runner.cleanup()

    logger.info("Work Item Worker stopped")


def run() -> None:
    """Synchronous entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
