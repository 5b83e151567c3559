# ============================================================================
# SERVICE EXECUTOR
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Runs one work item in the service container
# PURPOSE: Invoke the service, capture logs, enforce timeout, classify result
# CREATED: 16 OCT 2026
# EXPORTS: ServiceExecutor, ResultCell, find_stac_catalogs
# ============================================================================
"""
Service Executor

Takes a WorkItem and produces a ServiceResponse. It never raises: every
path, including timeouts and exec failures, ends in a response holding
either outputs or an error.

Execution:
    1. build the service argv (invocation args + --harmony-* options)
    2. race the container exec against the wall-clock timeout inside a
       TaskGroup; both sides write to one ResultCell and the first write
       wins, the other task is cancelled
    3. on exec completion: append the captured logs to the item's
       logs.json, then collect output catalogs (success) or resolve the
       error message (failure)

Output catalogs:
    - batch-catalogs.json in the output directory lists the file names in
      order, or
    - every catalog<N>.json, ordered by N numerically (catalog2 before
      catalog10)

Usage:
    executor = ServiceExecutor(service_id, KubectlExec(pod), artifact_root)
    response = await executor.run_service(work_item)
"""

import asyncio
import json
import re
from typing import Any, Callable, List, Optional

from core.logging import ComponentType, get_logger
from core.models import WorkItem
from infrastructure.storage import ObjectStore, object_store_for_url
from worker.contracts import ExecStatus, LogEntry, ServiceResponse, sanitize_image
from worker.errors import ErrorResolver
from worker.exec_client import ContainerExec
from worker.log_stream import LogStream

logger = get_logger(__name__, ComponentType.WORKER)

BATCH_CATALOGS_FILE = "batch-catalogs.json"
CATALOG_FILE_PATTERN = re.compile(r"catalog\d*\.json$")
CATALOG_INDEX_PATTERN = re.compile(r".*catalog(\d+)\.json$")


# ============================================================================
# RESULT CELL
# ============================================================================

class ResultCell:
    """
    Single-assignment result holder.

    The first set() wins; later calls are ignored and return False.
    Must be created inside a running event loop.
    """

    def __init__(self):
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    def set(self, value: Any) -> bool:
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    @property
    def is_set(self) -> bool:
        return self._future.done()

    async def wait(self) -> Any:
        return await asyncio.shield(self._future)


# ============================================================================
# OUTPUT CATALOGS
# ============================================================================

def _catalog_index(url: str) -> int:
    match = CATALOG_INDEX_PATTERN.match(url)
    return int(match.group(1)) if match else 0


async def find_stac_catalogs(store: ObjectStore, catalog_dir: str) -> List[str]:
    """
    Locations of the output catalogs in a work item's output directory.

    Args:
        store: Object store serving catalog_dir
        catalog_dir: Output directory URL

    Returns:
        Catalog URLs in output order
    """
    directory = catalog_dir if catalog_dir.endswith("/") else f"{catalog_dir}/"

    manifest = f"{directory}{BATCH_CATALOGS_FILE}"
    if await store.exists(manifest):
        filenames = await store.read_json(manifest)
        return [f"{directory}{name}" for name in filenames]

    urls = [key for key in await store.list_keys(directory) if CATALOG_FILE_PATTERN.search(key)]
    return sorted(urls, key=_catalog_index)


# ============================================================================
# EXECUTOR
# ============================================================================

class ServiceExecutor:
    """
    Runs work items for one service image.

    Args:
        service_id: Image of the service this worker fronts
        exec_client: ContainerExec used to run the service
        artifact_root: Root URL for outputs and logs
        timeout_seconds: Wall-clock bound per run
        invocation_args: Command that starts the service
        error_resolver: Failure classifier
        store_for_url: Object store lookup (injectable for tests)
    """

    def __init__(
        self,
        service_id: str,
        exec_client: ContainerExec,
        artifact_root: str,
        timeout_seconds: float = 7200.0,
        invocation_args: Optional[List[str]] = None,
        error_resolver: Optional[ErrorResolver] = None,
        store_for_url: Callable[[str], ObjectStore] = object_store_for_url,
    ):
        self.service_id = service_id
        self.service_name = sanitize_image(service_id)
        self.exec_client = exec_client
        self.artifact_root = artifact_root
        self.timeout_seconds = timeout_seconds
        self.invocation_args = list(invocation_args or [])
        self._store_for_url = store_for_url
        self.error_resolver = error_resolver or ErrorResolver(store_for_url)

    @property
    def default_error(self) -> str:
        return f"The {self.service_name} service failed."

    def build_argv(self, work_item: WorkItem) -> List[str]:
        return [
            *self.invocation_args,
            "--harmony-action",
            "invoke",
            "--harmony-input",
            json.dumps(work_item.operation),
            "--harmony-sources",
            work_item.stac_catalog_location or "",
            "--harmony-metadata-dir",
            work_item.stac_location(self.artifact_root),
        ]

    async def run_service(self, work_item: WorkItem) -> ServiceResponse:
        """Run one work item; always returns a response."""
        try:
            argv = self.build_argv(work_item)
            catalog_dir = work_item.stac_location(self.artifact_root)
            stream = LogStream(logger)
            cell = ResultCell()

            async def _timeout() -> None:
                await asyncio.sleep(self.timeout_seconds)
                if cell.set(ServiceResponse.failure(
                    f"Worker timed out after {self.timeout_seconds:g} seconds"
                )):
                    logger.warning(f"Work item {work_item.id} timed out")

            async def _execute() -> None:
                try:
                    status = await self.exec_client.invoke(argv, stream)
                except Exception as e:
                    logger.error(f"Container exec caught exception: {e}")
                    cell.set(ServiceResponse.failure(self.default_error))
                    return
                cell.set(await self._complete(work_item, status, stream.entries, catalog_dir))

            async with asyncio.TaskGroup() as tg:
                timer = tg.create_task(_timeout())
                runner = tg.create_task(_execute())
                try:
                    response = await cell.wait()
                finally:
                    timer.cancel()
                    runner.cancel()

            return response

        except Exception as e:
            logger.error(f"run_service caught exception: {e}")
            return ServiceResponse.failure("The service failed.")

    async def _complete(
        self,
        work_item: WorkItem,
        status: ExecStatus,
        entries: List[LogEntry],
        catalog_dir: str,
    ) -> ServiceResponse:
        """Persist logs and turn the exec status into a response."""
        try:
            await self.upload_logs(work_item, entries)
            if status.succeeded:
                logger.debug("Getting STAC catalogs")
                catalogs = await self.get_stac_catalogs(catalog_dir)
                return ServiceResponse.success(catalogs)

            message = await self.error_resolver.resolve(status, catalog_dir)
            return ServiceResponse.failure(f"{self.service_name}: {message}")
        except Exception as e:
            logger.error(f"Unable to upload logs. Caught exception: {e}")
            return ServiceResponse.failure(self.default_error)

    async def get_stac_catalogs(self, catalog_dir: str) -> List[str]:
        return await find_stac_catalogs(self._store_for_url(catalog_dir), catalog_dir)

    async def upload_logs(self, work_item: WorkItem, entries: List[LogEntry]) -> None:
        """
        Append this run's log entries to the item's logs.json.

        A marker naming the retry count and item id goes first. It is a
        plain string when the worker logged text, an object otherwise.
        """
        marker = f"Start of service execution (retryCount={work_item.retry_count}, id={work_item.id})"
        values = [entry.to_json_value() for entry in entries]
        if values and isinstance(values[0], str):
            content: List[Any] = [marker, *values]
        else:
            content = [{"message": marker}, *values]

        location = work_item.logs_location(self.artifact_root)
        store = self._store_for_url(location)
        if await store.exists(location):
            existing = await store.read_json(location)
            content = [*existing, *content]

        await store.write(json.dumps(content), location, "application/json")


__all__ = ["ServiceExecutor", "ResultCell", "find_stac_catalogs"]
