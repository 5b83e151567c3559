# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for queues, scheduling, storage, timeouts
# CREATED: 14 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides defaults for the scheduler and worker processes.
These can be overridden via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import json
import os
from dataclasses import dataclass, field
from typing import Dict, Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class QueueDefaults:
    """
    Defaults for the work queues.

    service_queues maps a serviceID (image:tag) to the name of the queue
    that holds its dispatch envelopes.
    """
    scheduler_queue_name: str = "work-item-scheduler"
    service_queues: Dict[str, str] = field(default_factory=dict)
    use_service_queues: bool = True

    # Receive waits (seconds)
    long_poll_seconds: float = 20.0
    short_poll_seconds: float = 0.5

    # Scheduling requests drained per pass
    scheduler_receive_count: int = 10

    def queue_name_for(self, service_id: str) -> Optional[str]:
        """Queue name configured for a service, if any."""
        return self.service_queues.get(service_id)

    @classmethod
    def from_env(cls) -> "QueueDefaults":
        """Create from environment variables."""
        raw_queues = os.getenv("SERVICE_QUEUES", "")
        service_queues = json.loads(raw_queues) if raw_queues.strip() else {}
        if not isinstance(service_queues, dict):
            raise ValueError("SERVICE_QUEUES must be a JSON object of serviceID -> queue name")

        return cls(
            scheduler_queue_name=os.getenv("WORK_SCHEDULER_QUEUE", "work-item-scheduler"),
            service_queues={str(k): str(v) for k, v in service_queues.items()},
            use_service_queues=_env_bool("USE_SERVICE_QUEUES", True),
            long_poll_seconds=float(os.getenv("QUEUE_LONG_POLL_SECONDS", "20")),
            short_poll_seconds=float(os.getenv("QUEUE_SHORT_POLL_SECONDS", "0.5")),
            scheduler_receive_count=int(os.getenv("SCHEDULER_RECEIVE_COUNT", "10")),
        )


@dataclass(frozen=True)
class TimeoutDefaults:
    """Wall-clock bounds (seconds)."""
    worker_timeout_seconds: float = 7200.0
    query_cmr_timeout_seconds: float = 7200.0
    shutdown_timeout_seconds: int = 30

    @property
    def longest_run_seconds(self) -> float:
        """Longest time a RUNNING item can legitimately take."""
        return max(self.worker_timeout_seconds, self.query_cmr_timeout_seconds)

    @classmethod
    def from_env(cls) -> "TimeoutDefaults":
        """Create from environment variables."""
        worker_timeout = float(os.getenv("WORKER_TIMEOUT_SECONDS", "7200"))
        return cls(
            worker_timeout_seconds=worker_timeout,
            query_cmr_timeout_seconds=float(
                os.getenv("QUERY_CMR_TIMEOUT_SECONDS", str(worker_timeout))
            ),
            shutdown_timeout_seconds=int(os.getenv("SHUTDOWN_TIMEOUT", "30")),
        )


@dataclass(frozen=True)
class SchedulingDefaults:
    """
    Defaults for the fairness poller and the requeue loop.

    Items are RUNNING from the moment they are claimed, so the stale
    threshold covers queue dwell time plus the longest run. Unless
    STALE_RUNNING_SECONDS is set it is the longest timeout plus
    stale_margin_seconds.
    """
    batch_size: int = 50
    max_retries: int = 3
    stale_margin_seconds: int = 1800
    stale_running_seconds: int = 9000
    scheduler_interval_seconds: float = 1.0
    requeue_interval_seconds: float = 60.0
    cmr_max_page_size: int = 2000

    @classmethod
    def from_env(cls, timeouts: Optional[TimeoutDefaults] = None) -> "SchedulingDefaults":
        """Create from environment variables."""
        timeouts = timeouts or TimeoutDefaults.from_env()
        margin = int(os.getenv("STALE_MARGIN_SECONDS", "1800"))
        stale = os.getenv("STALE_RUNNING_SECONDS")
        return cls(
            batch_size=int(os.getenv("WORK_ITEM_SCHEDULER_BATCH_SIZE", "50")),
            max_retries=int(os.getenv("WORK_ITEM_RETRY_LIMIT", "3")),
            stale_margin_seconds=margin,
            stale_running_seconds=int(stale) if stale else int(timeouts.longest_run_seconds) + margin,
            scheduler_interval_seconds=float(os.getenv("SCHEDULER_INTERVAL_SECONDS", "1.0")),
            requeue_interval_seconds=float(os.getenv("REQUEUE_INTERVAL_SECONDS", "60")),
            cmr_max_page_size=int(os.getenv("CMR_MAX_PAGE_SIZE", "2000")),
        )


@dataclass(frozen=True)
class StorageDefaults:
    """Where work item outputs and logs are written."""
    artifact_root: str = "file:///tmp/work-artifacts"

    @classmethod
    def from_env(cls) -> "StorageDefaults":
        """Create from environment variables."""
        return cls(
            artifact_root=os.getenv("ARTIFACT_ROOT", "file:///tmp/work-artifacts").rstrip("/"),
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    queues: QueueDefaults = field(default_factory=QueueDefaults)
    scheduling: SchedulingDefaults = field(default_factory=SchedulingDefaults)
    storage: StorageDefaults = field(default_factory=StorageDefaults)
    timeouts: TimeoutDefaults = field(default_factory=TimeoutDefaults)

    def __post_init__(self):
        # a RUNNING item must not be requeued while its worker may still finish it
        if self.scheduling.stale_running_seconds <= self.timeouts.longest_run_seconds:
            raise ValueError(
                f"stale_running_seconds ({self.scheduling.stale_running_seconds}) must exceed "
                f"the longest work timeout ({self.timeouts.longest_run_seconds:g}s)"
            )

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        timeouts = TimeoutDefaults.from_env()
        return cls(
            queues=QueueDefaults.from_env(),
            scheduling=SchedulingDefaults.from_env(timeouts),
            storage=StorageDefaults.from_env(),
            timeouts=timeouts,
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "QueueDefaults",
    "SchedulingDefaults",
    "StorageDefaults",
    "TimeoutDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
