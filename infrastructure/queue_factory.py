# ============================================================================
# QUEUE FACTORY
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Infrastructure - Queue lookup per service
# PURPOSE: Map serviceIDs to their dispatch queues and expose the scheduler queue
# CREATED: 16 OCT 2026
# ============================================================================
"""
Queue Factory

Built once at process start and passed to the components that need
queues. Queue objects are cached by name so every caller shares one
receiver/sender per queue.

QUEUE_BACKEND selects the implementation:
    servicebus  - Azure Service Bus (default)
    memory      - in-process queues (local runs, tests)
"""

import logging
import os
from typing import Awaitable, Callable, Dict, Optional

from core.config import QueueDefaults
from core.errors import QueueNotConfiguredError
from infrastructure.queue import MemoryWorkQueue, WorkQueue

logger = logging.getLogger(__name__)


class QueueFactory:
    """Resolves and caches WorkQueues."""

    def __init__(
        self,
        defaults: QueueDefaults,
        create_queue: Callable[[str], WorkQueue],
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        """
        Args:
            defaults: Queue names and service mapping
            create_queue: Builds a queue for a queue name
            on_close: Releases shared connections after the queues close
        """
        self.defaults = defaults
        self._create_queue = create_queue
        self._on_close = on_close
        self._queues: Dict[str, WorkQueue] = {}

    def _queue(self, name: str) -> WorkQueue:
        if name not in self._queues:
            self._queues[name] = self._create_queue(name)
        return self._queues[name]

    @property
    def use_service_queues(self) -> bool:
        return self.defaults.use_service_queues

    def queue_name_for_service(self, service_id: str) -> Optional[str]:
        return self.defaults.queue_name_for(service_id)

    def queue_for_service(self, service_id: str) -> WorkQueue:
        """
        Raises:
            QueueNotConfiguredError: If no queue is mapped to the service
        """
        name = self.queue_name_for_service(service_id)
        if not name:
            raise QueueNotConfiguredError(service_id)
        return self._queue(name)

    def scheduler_queue(self) -> WorkQueue:
        return self._queue(self.defaults.scheduler_queue_name)

    async def close(self) -> None:
        for queue in self._queues.values():
            await queue.close()
        self._queues.clear()
        if self._on_close is not None:
            await self._on_close()


def create_queue_factory(
    defaults: QueueDefaults,
    backend: Optional[str] = None,
) -> QueueFactory:
    """
    Build a QueueFactory for the configured backend.

    Args:
        defaults: Queue defaults
        backend: "servicebus" or "memory" (defaults to QUEUE_BACKEND env)
    """
    backend = (backend or os.getenv("QUEUE_BACKEND", "servicebus")).lower()

    if backend == "memory":
        logger.info("Using in-memory work queues")
        return QueueFactory(
            defaults,
            lambda name: MemoryWorkQueue(name, long_poll_seconds=defaults.long_poll_seconds),
        )

    if backend == "servicebus":
        from infrastructure.service_bus import (
            ServiceBusClientFactory,
            ServiceBusConfig,
            ServiceBusWorkQueue,
        )

        config = ServiceBusConfig.from_env()
        clients = ServiceBusClientFactory(config)
        logger.info("Using Service Bus work queues")
        return QueueFactory(
            defaults,
            lambda name: ServiceBusWorkQueue(name, config, client_factory=clients),
            on_close=clients.close,
        )

    raise ValueError(f"Unknown QUEUE_BACKEND: {backend}")


__all__ = ["QueueFactory", "create_queue_factory"]
