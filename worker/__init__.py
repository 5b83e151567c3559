# ============================================================================
# WORKER MODULE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Worker execution components
# PURPOSE: Run work items in service containers and record their outcomes
# CREATED: 16 OCT 2026
# ============================================================================
"""
Worker Module

Components for work item execution on worker pods:
- contracts: ServiceResponse, log entries, exec status, worker configuration
- log_stream: capture of service stdout
- exec_client: container exec (kubectl)
- errors: failure classification
- executor: service execution with timeout and log upload
- query_cmr: query-cmr execution over HTTP
- reporter: outcome recording in the store
- consumer: get / run / report loop
- metrics: Prometheus gauge of ready work
- main: worker entry point
"""

from worker.contracts import (
    ServiceResponse,
    TextLogEntry,
    StructuredLogEntry,
    LogEntry,
    ExecStatus,
    WorkerConfig,
    sanitize_image,
)
from worker.log_stream import LogStream
from worker.exec_client import ContainerExec, KubectlExec
from worker.errors import ErrorResolver
from worker.executor import ServiceExecutor, ResultCell, find_stac_catalogs
from worker.query_cmr import QueryCmrExecutor
from worker.reporter import ResultReporter
from worker.consumer import WorkConsumer

__all__ = [
    # Contracts
    "ServiceResponse",
    "TextLogEntry",
    "StructuredLogEntry",
    "LogEntry",
    "ExecStatus",
    "WorkerConfig",
    "sanitize_image",
    # Execution
    "LogStream",
    "ContainerExec",
    "KubectlExec",
    "ErrorResolver",
    "ServiceExecutor",
    "ResultCell",
    "find_stac_catalogs",
    "QueryCmrExecutor",
    # Reporting
    "ResultReporter",
    "WorkConsumer",
]
