# ============================================================================
# QUERY-CMR EXECUTOR
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Worker - Runs query-cmr work items over HTTP
# PURPOSE: Call the query-cmr sidecar and collect its catalogs and scroll id
# CREATED: 16 OCT 2026
# ============================================================================
"""
Query-CMR Executor

The query-cmr service runs as an HTTP server in the worker pod rather than
as a command. One work item is one POST to ``/work``:

    {"outputDir": ..., "harmonyInput": <operation>, "scrollId": ...,
     "maxCmrGranules": ..., "workItemId": ...}

A response below 300 yields the output catalogs (same discovery rules as
the service executor) plus totalItemsSize, outputItemSizes and the next
scrollID. Anything else is an error: the response's "description", or a
message naming the status.
"""

from typing import Callable, Optional

import httpx

from core.logging import ComponentType, get_logger
from core.models import WorkItem
from infrastructure.storage import ObjectStore, object_store_for_url
from worker.contracts import ServiceResponse
from worker.executor import find_stac_catalogs

logger = get_logger(__name__, ComponentType.WORKER)


class QueryCmrExecutor:
    """Runs query-cmr work items against the local query-cmr server."""

    def __init__(
        self,
        worker_port: int,
        artifact_root: str,
        timeout_seconds: float = 7200.0,
        client: Optional[httpx.AsyncClient] = None,
        store_for_url: Callable[[str], ObjectStore] = object_store_for_url,
    ):
        self.work_url = f"http://127.0.0.1:{worker_port}/work"
        self.artifact_root = artifact_root
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = client is None
        self._store_for_url = store_for_url

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def run(self, work_item: WorkItem, max_cmr_granules: Optional[int] = None) -> ServiceResponse:
        """Run one query-cmr work item; always returns a response."""
        logger.debug(f"Calling worker with maxCmrGranules = {max_cmr_granules}")
        catalog_dir = work_item.stac_location(self.artifact_root)
        payload = {
            "outputDir": catalog_dir,
            "harmonyInput": work_item.operation,
            "scrollId": work_item.scroll_id,
            "maxCmrGranules": max_cmr_granules,
            "workItemId": work_item.id,
        }

        response: Optional[httpx.Response] = None
        try:
            response = await self._get_client().post(
                self.work_url, json=payload, timeout=self.timeout_seconds
            )
            if response.status_code < 300:
                data = response.json()
                catalogs = await find_stac_catalogs(self._store_for_url(catalog_dir), catalog_dir)
                return ServiceResponse.success(
                    catalogs,
                    total_items_size=data.get("totalItemsSize"),
                    output_item_sizes=data.get("outputItemSizes"),
                    scroll_id=data.get("scrollID"),
                    hits=data.get("hits"),
                )
        except Exception as e:
            logger.error(f"Query CMR request failed: {e}")

        return ServiceResponse.failure(self._error_from_response(response))

    @staticmethod
    def _error_from_response(response: Optional[httpx.Response]) -> str:
        if response is None:
            return "The Query CMR service failed."
        description = ""
        try:
            data = response.json()
            if isinstance(data, dict):
                description = data.get("description") or ""
        except ValueError:
            pass
        if description:
            return description
        status = response.reason_phrase or response.status_code
        return f"The Query CMR service responded with status {status}."


__all__ = ["QueryCmrExecutor"]
