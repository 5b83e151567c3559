# ============================================================================
# ERROR RESOLVER TESTS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Tests - Failure classification
# PURPOSE: Verify error.json > OOM exit code > default precedence
# CREATED: 16 OCT 2026
# ============================================================================
"""
Error Resolver Tests

Run with:
    pytest tests/test_error_resolver.py -v
"""

import asyncio
import pytest

from worker.contracts import ExecStatus
from worker.errors import (
    NO_ERROR_MESSAGE,
    OOM_ERROR_MESSAGE,
    UNKNOWN_ERROR_MESSAGE,
    ErrorResolver,
)
from tests.fakes import MemoryObjectStore

OUTPUTS = "s3://artifacts/job-1/7/outputs/"
ERROR_FILE = f"{OUTPUTS}error.json"

OOM = ExecStatus(status=ExecStatus.FAILURE, exit_code=137)
EXIT_1 = ExecStatus(status=ExecStatus.FAILURE, exit_code=1)


def _resolve(objects, status):
    resolver = ErrorResolver(store_for_url=lambda url: objects)
    return asyncio.run(resolver.resolve(status, OUTPUTS))


class TestPrecedence:
    def test_error_file_beats_oom(self):
        objects = MemoryObjectStore()
        objects.put_json(ERROR_FILE, {"error": "Granule has no data", "category": "Client"})
        assert _resolve(objects, OOM) == "Granule has no data"

    def test_oom_without_error_file(self):
        assert _resolve(MemoryObjectStore(), OOM) == OOM_ERROR_MESSAGE

    def test_default_without_error_file(self):
        assert _resolve(MemoryObjectStore(), EXIT_1) == UNKNOWN_ERROR_MESSAGE

    def test_no_status(self):
        assert _resolve(MemoryObjectStore(), None) == UNKNOWN_ERROR_MESSAGE


class TestUnreadableErrorFile:
    @pytest.mark.parametrize("content", [
        '{"category": "Client"}',
        '{"error": 42}',
        '["not", "an", "object"]',
        "not json",
    ])
    def test_malformed_file(self, content):
        objects = MemoryObjectStore({ERROR_FILE: content})
        assert _resolve(objects, EXIT_1) == NO_ERROR_MESSAGE

    def test_malformed_file_with_oom(self):
        objects = MemoryObjectStore({ERROR_FILE: "{"})
        assert _resolve(objects, OOM) == OOM_ERROR_MESSAGE

    def test_read_failure(self):
        objects = MemoryObjectStore({ERROR_FILE: '{"error": "x"}'})
        objects.fail_reads = TimeoutError("storage unavailable")
        assert _resolve(objects, EXIT_1) == NO_ERROR_MESSAGE


class TestMessageForStatus:
    def test_oom(self):
        assert ErrorResolver.message_for_status(OOM) == OOM_ERROR_MESSAGE

    def test_default(self):
        assert ErrorResolver.message_for_status(EXIT_1, "fallback") == "fallback"
