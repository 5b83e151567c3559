# ============================================================================
# QUERY-CMR EXECUTOR TESTS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Tests - Query-cmr work over HTTP
# PURPOSE: Verify request payload, success fields and error messages
# CREATED: 16 OCT 2026
# ============================================================================
"""
Query-CMR Executor Tests

Uses httpx.MockTransport in place of the query-cmr server.

Run with:
    pytest tests/test_query_cmr.py -v
"""

import asyncio
import json

import httpx

from core.contracts import WorkItemStatus
from core.models import WorkItem
from worker.query_cmr import QueryCmrExecutor
from tests.fakes import MemoryObjectStore

ARTIFACTS = "s3://artifacts"
OUTPUTS = f"{ARTIFACTS}/job-1/5/outputs/"


def _make_item():
    return WorkItem(
        id=5,
        job_id="job-1",
        service_id="harmonyservices/query-cmr:stable",
        status=WorkItemStatus.RUNNING,
        operation={"sources": [{"collection": "C1"}]},
        scroll_id="scroll-0",
    )


def _run(handler, objects=None):
    """Run one work item against a mock query-cmr server."""
    objects = objects or MemoryObjectStore()

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            executor = QueryCmrExecutor(
                5000, ARTIFACTS, timeout_seconds=5, client=client,
                store_for_url=lambda url: objects,
            )
            return await executor.run(_make_item(), max_cmr_granules=2000)

    return asyncio.run(scenario())


class TestQueryCmrExecutor:
    def test_request_payload(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        _run(handler)

        assert seen["url"] == "http://127.0.0.1:5000/work"
        assert seen["body"] == {
            "outputDir": OUTPUTS,
            "harmonyInput": {"sources": [{"collection": "C1"}]},
            "scrollId": "scroll-0",
            "maxCmrGranules": 2000,
            "workItemId": 5,
        }

    def test_success(self):
        objects = MemoryObjectStore()
        objects.put_json(f"{OUTPUTS}catalog1.json", {})
        objects.put_json(f"{OUTPUTS}catalog0.json", {})

        def handler(request):
            return httpx.Response(200, json={
                "totalItemsSize": 4.5,
                "outputItemSizes": [2.0, 2.5],
                "scrollID": "scroll-1",
                "hits": 3000,
            })

        response = _run(handler, objects)

        assert not response.is_error
        assert response.batch_catalogs == [f"{OUTPUTS}catalog0.json", f"{OUTPUTS}catalog1.json"]
        assert response.total_items_size == 4.5
        assert response.output_item_sizes == [2.0, 2.5]
        assert response.scroll_id == "scroll-1"
        assert response.hits == 3000

    def test_error_description(self):
        def handler(request):
            return httpx.Response(400, json={"description": "Error: CMR query failed"})

        assert _run(handler).error == "Error: CMR query failed"

    def test_error_without_description(self):
        def handler(request):
            return httpx.Response(503, text="unavailable")

        assert _run(handler).error == "The Query CMR service responded with status Service Unavailable."

    def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert _run(handler).error == "The Query CMR service failed."
