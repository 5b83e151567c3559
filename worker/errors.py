# ============================================================================
# ERROR RESOLVER
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Worker - Failure classification
# PURPOSE: Turn the signals of a failed run into one user-facing message
# CREATED: 16 OCT 2026
# ============================================================================
"""
Error Resolver

First match wins:
    1. error.json in the work item's output directory -> its "error" field
    2. exit code 137 (OOM kill)                        -> fixed OOM message
    3. otherwise                                       -> default message

A missing, unreadable or malformed error.json is logged and treated as
absent; it never becomes the execution's own error.
"""

from typing import Callable, Optional

from core.logging import ComponentType, get_logger
from infrastructure.storage import ObjectStore, object_store_for_url
from worker.contracts import OOM_EXIT_CODE, ExecStatus

logger = get_logger(__name__, ComponentType.WORKER)

ERROR_FILE_NAME = "error.json"
OOM_ERROR_MESSAGE = "Service failed due to running out of memory"
UNKNOWN_ERROR_MESSAGE = "Unknown error"
NO_ERROR_MESSAGE = "Service terminated without error message"


class ErrorResolver:
    """Builds the error message for a failed execution."""

    def __init__(self, store_for_url: Callable[[str], ObjectStore] = object_store_for_url):
        self._store_for_url = store_for_url

    @staticmethod
    def message_for_status(status: Optional[ExecStatus], default: str = UNKNOWN_ERROR_MESSAGE) -> str:
        """OOM message for exit code 137, the default otherwise."""
        if status is not None and status.exit_code == OOM_EXIT_CODE:
            return OOM_ERROR_MESSAGE
        return default

    async def resolve(self, status: Optional[ExecStatus], catalog_dir: str) -> str:
        """
        Error message for a failed run.

        Args:
            status: Terminal exec status
            catalog_dir: Output directory of the work item (trailing slash)
        """
        error_file = f"{catalog_dir.rstrip('/')}/{ERROR_FILE_NAME}"
        try:
            store = self._store_for_url(error_file)
            if await store.exists(error_file):
                entry = await store.read_json(error_file)
                if not isinstance(entry, dict) or not isinstance(entry.get("error"), str):
                    raise ValueError(f"{ERROR_FILE_NAME} has no error message")
                return entry["error"]
            return self.message_for_status(status)
        except Exception as e:
            logger.error(f"Caught exception: {e}")
            logger.error(f"Unable to parse out error from catalog location: {catalog_dir}")
            return self.message_for_status(status, NO_ERROR_MESSAGE)


__all__ = [
    "ErrorResolver",
    "OOM_ERROR_MESSAGE",
    "UNKNOWN_ERROR_MESSAGE",
    "NO_ERROR_MESSAGE",
]
