# ============================================================================
# WORKER CONTRACTS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Worker-side contracts and configuration
# PURPOSE: Execution result, captured log entries, exec status, worker config
# CREATED: 16 OCT 2026
# ============================================================================
"""
Worker Contracts

ServiceResponse is what every execution resolves to. It holds either the
outputs of a successful run:

    {"batchCatalogs": [...], "totalItemsSize": 1.5,
     "outputItemSizes": [...], "scrollID": "..."}

or an error, never both:

    {"error": "subsetter:1.2.0: Service failed due to running out of memory"}

Captured worker output is a list of LogEntry values: TextLogEntry for
plain lines, StructuredLogEntry for lines that parsed as JSON objects.
"""

import os
import re
import socket
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Exit code the container runtime reports for an OOM kill
OOM_EXIT_CODE = 137


# ============================================================================
# SERVICE RESPONSE
# ============================================================================

class ServiceResponse(BaseModel):
    """Outcome of one work item execution."""
    model_config = ConfigDict(populate_by_name=True)

    batch_catalogs: Optional[List[str]] = Field(default=None, alias="batchCatalogs")
    total_items_size: Optional[float] = Field(default=None, alias="totalItemsSize")
    output_item_sizes: Optional[List[float]] = Field(default=None, alias="outputItemSizes")
    hits: Optional[int] = None
    scroll_id: Optional[str] = Field(default=None, alias="scrollID")
    error: Optional[str] = None

    @model_validator(mode="after")
    def _outputs_or_error(self) -> "ServiceResponse":
        if self.error is not None and self.batch_catalogs is not None:
            raise ValueError("ServiceResponse carries either outputs or an error, not both")
        return self

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def success(
        cls,
        batch_catalogs: List[str],
        total_items_size: Optional[float] = None,
        output_item_sizes: Optional[List[float]] = None,
        scroll_id: Optional[str] = None,
        hits: Optional[int] = None,
    ) -> "ServiceResponse":
        return cls(
            batch_catalogs=list(batch_catalogs),
            total_items_size=total_items_size,
            output_item_sizes=output_item_sizes,
            scroll_id=scroll_id,
            hits=hits,
        )

    @classmethod
    def failure(cls, error: str) -> "ServiceResponse":
        return cls(error=error)


# ============================================================================
# CAPTURED LOG ENTRIES
# ============================================================================

@dataclass(frozen=True)
class TextLogEntry:
    """A line of worker output that was not a JSON object."""
    text: str

    def to_json_value(self) -> Any:
        return self.text


@dataclass(frozen=True)
class StructuredLogEntry:
    """A JSON log record emitted by the worker (reserved fields renamed)."""
    fields: Dict[str, Any]

    def to_json_value(self) -> Any:
        return dict(self.fields)


LogEntry = Union[TextLogEntry, StructuredLogEntry]


# ============================================================================
# EXEC STATUS
# ============================================================================

@dataclass(frozen=True)
class ExecStatus:
    """
    Terminal status of a container exec.

    status is "Success" or "Failure"; exit_code is the process exit code
    when the runtime reported one.
    """
    status: str
    exit_code: Optional[int] = None
    message: Optional[str] = None

    SUCCESS = "Success"
    FAILURE = "Failure"

    @property
    def succeeded(self) -> bool:
        return self.status == self.SUCCESS

    @classmethod
    def from_exit_code(cls, exit_code: int, message: Optional[str] = None) -> "ExecStatus":
        if exit_code == 0:
            return cls(status=cls.SUCCESS, exit_code=0, message=message)
        return cls(status=cls.FAILURE, exit_code=exit_code, message=message)


# ============================================================================
# IMAGE NAMES
# ============================================================================

_REGISTRY_PATTERNS = [
    re.compile(r".*amazonaws\.com/"),
    re.compile(r".*ghcr\.io/"),
    re.compile(r".*earthdata\.nasa\.gov/"),
    re.compile(r".*azurecr\.io/"),
]


def sanitize_image(image: str) -> str:
    """Strip the registry host from an image name for user-facing messages."""
    for pattern in _REGISTRY_PATTERNS:
        image = pattern.sub("", image, count=1)
    return image


def parse_invocation_args(raw: str) -> List[str]:
    """Invocation args may be newline separated or space separated."""
    args = raw.split("\n")
    if len(args) == 1:
        args = raw.split(" ")
    return [a.strip() for a in args if a.strip()]


# ============================================================================
# WORKER CONFIGURATION
# ============================================================================

@dataclass
class WorkerConfig:
    """Configuration for a work item worker."""

    # Identity
    service_id: str
    worker_id: str = ""

    # Service invocation
    invocation_args: List[str] = field(default_factory=list)
    pod_name: str = ""
    namespace: str = "work"
    container: str = "worker"

    # Query-CMR sidecar port
    worker_port: int = 5000

    # Scheduler process (metrics)
    backend_url: str = "http://localhost:8000"

    # Outputs and logs
    artifact_root: str = "file:///tmp/work-artifacts"

    # Execution
    worker_timeout_seconds: float = 7200.0
    max_concurrent_work: int = 1
    shutdown_timeout_seconds: int = 30
    health_port: int = 8080

    # Database (dispatch and result reporting)
    database_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "WorkerConfig":
        """Create config from environment variables."""
        return cls(
            service_id=os.getenv("SERVICE_ID", ""),
            worker_id=os.getenv("WORKER_ID", f"worker-{socket.gethostname()}"),
            invocation_args=parse_invocation_args(os.getenv("INVOCATION_ARGS", "")),
            pod_name=os.getenv("MY_POD_NAME", socket.gethostname()),
            namespace=os.getenv("WORKER_NAMESPACE", "work"),
            container=os.getenv("WORKER_CONTAINER", "worker"),
            worker_port=int(os.getenv("WORKER_PORT", "5000")),
            backend_url=os.getenv("BACKEND_URL", "http://localhost:8000").rstrip("/"),
            artifact_root=os.getenv("ARTIFACT_ROOT", "file:///tmp/work-artifacts").rstrip("/"),
            worker_timeout_seconds=float(os.getenv("WORKER_TIMEOUT_SECONDS", "7200")),
            max_concurrent_work=int(os.getenv("MAX_CONCURRENT_WORK", "1")),
            shutdown_timeout_seconds=int(os.getenv("SHUTDOWN_TIMEOUT", "30")),
            health_port=int(os.getenv("PORT", "8080")),
            database_url=os.getenv("DATABASE_URL"),
        )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "OOM_EXIT_CODE",
    "ServiceResponse",
    "TextLogEntry",
    "StructuredLogEntry",
    "LogEntry",
    "ExecStatus",
    "sanitize_image",
    "parse_invocation_args",
    "WorkerConfig",
]
