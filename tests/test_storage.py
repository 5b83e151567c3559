# ============================================================================
# OBJECT STORAGE TESTS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Tests - Local object store and URL routing
# PURPOSE: Verify file store operations and blob URL parsing
# CREATED: 16 OCT 2026
# ============================================================================
"""
Object Storage Tests

Run with:
    pytest tests/test_storage.py -v
"""

import asyncio
import json
import pytest

from core.contracts import WorkItemStatus
from core.models import WorkItem
from infrastructure.storage import (
    BlobObjectStore,
    FileObjectStore,
    object_store_for_url,
    parse_blob_url,
)
from worker.executor import ServiceExecutor
from tests.fakes import SERVICE_ID, FakeExec


class TestFileObjectStore:
    def test_write_creates_parents(self, tmp_path):
        store = FileObjectStore()
        url = (tmp_path / "job-1" / "7" / "logs.json").as_uri()

        async def scenario():
            await store.write(json.dumps(["a"]), url)
            return await store.exists(url), await store.read_json(url)

        exists, content = asyncio.run(scenario())
        assert exists
        assert content == ["a"]

    def test_bare_paths(self, tmp_path):
        store = FileObjectStore()
        path = str(tmp_path / "x.txt")

        asyncio.run(store.write("hello", path, "text/plain"))
        assert asyncio.run(store.read_text(path)) == "hello"

    def test_missing_file(self, tmp_path):
        store = FileObjectStore()
        url = (tmp_path / "missing.json").as_uri()

        assert not asyncio.run(store.exists(url))
        with pytest.raises(FileNotFoundError):
            asyncio.run(store.read_text(url))

    def test_list_keys_keeps_url_form(self, tmp_path):
        (tmp_path / "outputs").mkdir()
        (tmp_path / "outputs" / "catalog0.json").write_text("{}")
        (tmp_path / "outputs" / "catalog1.json").write_text("{}")

        keys = asyncio.run(FileObjectStore().list_keys((tmp_path / "outputs").as_uri() + "/"))

        assert keys == [
            (tmp_path / "outputs" / "catalog0.json").as_uri(),
            (tmp_path / "outputs" / "catalog1.json").as_uri(),
        ]

    def test_list_missing_directory(self, tmp_path):
        assert asyncio.run(FileObjectStore().list_keys(str(tmp_path / "nope"))) == []


class TestUrlRouting:
    def test_parse_blob_url(self):
        assert parse_blob_url(
            "https://acct.blob.core.windows.net/artifacts/job-1/7/logs.json"
        ) == ("acct", "artifacts", "job-1/7/logs.json")

    def test_parse_rejects_other_hosts(self):
        with pytest.raises(ValueError):
            parse_blob_url("https://example.com/a/b")

    def test_file_urls(self):
        assert isinstance(object_store_for_url("file:///tmp/a"), FileObjectStore)
        assert isinstance(object_store_for_url("/tmp/a"), FileObjectStore)

    def test_blob_urls_share_instance_per_account(self):
        first = object_store_for_url("https://acct.blob.core.windows.net/c/a.json")
        second = object_store_for_url("https://acct.blob.core.windows.net/c/b.json")
        assert isinstance(first, BlobObjectStore)
        assert first is second

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError):
            object_store_for_url("ftp://host/a")


class TestExecutorOnFiles:
    def test_outputs_and_logs_on_disk(self, tmp_path):
        root = tmp_path.as_uri()
        item = WorkItem(id=7, job_id="job-1", service_id=SERVICE_ID, status=WorkItemStatus.RUNNING)
        outputs = tmp_path / "job-1" / "7" / "outputs"

        def write_outputs(argv):
            outputs.mkdir(parents=True)
            for n in (10, 2):
                (outputs / f"catalog{n}.json").write_text("{}")

        executor = ServiceExecutor(SERVICE_ID, FakeExec(lines=["done"], on_invoke=write_outputs), root)
        response = asyncio.run(executor.run_service(item))

        assert response.batch_catalogs == [
            (outputs / "catalog2.json").as_uri(),
            (outputs / "catalog10.json").as_uri(),
        ]
        logs = json.loads((tmp_path / "job-1" / "7" / "logs.json").read_text())
        assert logs == ["Start of service execution (retryCount=0, id=7)", "done"]
