# ============================================================================
# WORKER CONTRACT TESTS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Tests - Worker-side contracts
# PURPOSE: Verify ServiceResponse, log capture, image names, worker config
# CREATED: 16 OCT 2026
# ============================================================================
"""
Worker Contract Tests

Covers:
1. ServiceResponse: outputs xor error, wire names
2. ExecStatus from exit codes
3. LogStream line parsing and re-logging
4. sanitize_image and invocation argument parsing
5. WorkerConfig from environment

Run with:
    pytest tests/test_worker_contracts.py -v
"""

import pytest
from unittest.mock import MagicMock

from pydantic import ValidationError

from worker.contracts import (
    ExecStatus,
    ServiceResponse,
    StructuredLogEntry,
    TextLogEntry,
    WorkerConfig,
    parse_invocation_args,
    sanitize_image,
)
from worker.log_stream import LogStream


# ============================================================================
# SERVICE RESPONSE
# ============================================================================


class TestServiceResponse:
    def test_success(self):
        response = ServiceResponse.success(["s3://out/catalog0.json"], total_items_size=2.5)
        assert not response.is_error
        assert response.batch_catalogs == ["s3://out/catalog0.json"]

    def test_failure(self):
        response = ServiceResponse.failure("boom")
        assert response.is_error
        assert response.batch_catalogs is None

    def test_outputs_and_error_rejected(self):
        with pytest.raises(ValidationError):
            ServiceResponse(batch_catalogs=["a"], error="boom")

    def test_wire_names(self):
        response = ServiceResponse.model_validate({
            "batchCatalogs": ["a"],
            "totalItemsSize": 1.0,
            "outputItemSizes": [1.0],
            "scrollID": "scroll-1",
            "hits": 10,
        })
        assert response.scroll_id == "scroll-1"
        assert response.output_item_sizes == [1.0]
        assert response.hits == 10


class TestExecStatus:
    def test_zero_is_success(self):
        status = ExecStatus.from_exit_code(0)
        assert status.succeeded
        assert status.status == "Success"

    def test_non_zero_is_failure(self):
        status = ExecStatus.from_exit_code(137)
        assert not status.succeeded
        assert status.exit_code == 137


# ============================================================================
# LOG STREAM
# ============================================================================


class TestLogStream:
    def test_text_line(self):
        assert LogStream.parse_line("plain output") == TextLogEntry("plain output")

    def test_json_object_renames_reserved_fields(self):
        entry = LogStream.parse_line('{"timestamp": "t0", "level": "error", "message": "m", "user": "u"}')
        assert isinstance(entry, StructuredLogEntry)
        assert entry.fields == {"workerTimestamp": "t0", "workerLevel": "error", "message": "m", "user": "u"}

    @pytest.mark.parametrize("line", ["[1, 2]", '"quoted"', "42", "{broken"])
    def test_non_object_json_is_text(self, line):
        assert isinstance(LogStream.parse_line(line), TextLogEntry)

    def test_write_splits_lines_and_skips_blanks(self):
        stream = LogStream(MagicMock())
        stream.write("one\n\n  \ntwo\n")
        assert stream.to_json_values() == ["one", "two"]

    def test_relogs_with_worker_flag(self):
        logger = MagicMock()
        stream = LogStream(logger)

        stream.write_line('{"message": "converted", "granule": "G1"}')
        stream.write_line("plain")

        first, second = logger.debug.call_args_list
        assert first.args == ("converted",)
        assert first.kwargs["extra"] == {"granule": "G1", "worker": True}
        assert second.args == ("plain",)
        assert second.kwargs["extra"] == {"worker": True}

    def test_entries_keep_message(self):
        stream = LogStream(MagicMock())
        stream.write_line('{"message": "kept"}')
        assert stream.to_json_values() == [{"message": "kept"}]


# ============================================================================
# IMAGE NAMES & ARGS
# ============================================================================


class TestSanitizeImage:
    @pytest.mark.parametrize("image,expected", [
        ("123456789012.dkr.ecr.us-west-2.amazonaws.com/harmony/subsetter:1.2", "harmony/subsetter:1.2"),
        ("ghcr.io/nasa/regridder:latest", "nasa/regridder:latest"),
        ("registry.earthdata.nasa.gov/harmony/netcdf:2", "harmony/netcdf:2"),
        ("acme.azurecr.io/services/reproject:3", "services/reproject:3"),
        ("harmonyservices/query-cmr:stable", "harmonyservices/query-cmr:stable"),
    ])
    def test_strips_registry(self, image, expected):
        assert sanitize_image(image) == expected


class TestInvocationArgs:
    def test_newline_separated(self):
        assert parse_invocation_args("python\n-m\nsubsetter\n") == ["python", "-m", "subsetter"]

    def test_space_separated(self):
        assert parse_invocation_args("python -m  subsetter") == ["python", "-m", "subsetter"]

    def test_empty(self):
        assert parse_invocation_args("") == []


# ============================================================================
# WORKER CONFIG
# ============================================================================


class TestWorkerConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SERVICE_ID", "ghcr.io/acme/subsetter:1.0")
        monkeypatch.setenv("INVOCATION_ARGS", "python\n-m\nsubsetter")
        monkeypatch.setenv("MY_POD_NAME", "subsetter-abc")
        monkeypatch.setenv("BACKEND_URL", "http://scheduler:8000/")
        monkeypatch.setenv("MAX_CONCURRENT_WORK", "2")
        monkeypatch.setenv("WORKER_TIMEOUT_SECONDS", "60")

        config = WorkerConfig.from_env()

        assert config.service_id == "ghcr.io/acme/subsetter:1.0"
        assert config.invocation_args == ["python", "-m", "subsetter"]
        assert config.pod_name == "subsetter-abc"
        assert config.backend_url == "http://scheduler:8000"
        assert config.max_concurrent_work == 2
        assert config.worker_timeout_seconds == 60.0

    def test_defaults(self, monkeypatch):
        for name in ("WORKER_PORT", "WORKER_NAMESPACE", "PORT", "DATABASE_URL"):
            monkeypatch.delenv(name, raising=False)

        config = WorkerConfig.from_env()

        assert config.worker_port == 5000
        assert config.namespace == "work"
        assert config.health_port == 8080
        assert config.database_url is None
