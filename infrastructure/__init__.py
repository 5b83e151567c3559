# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Infrastructure exports
# PURPOSE: Queues and object storage
# CREATED: 16 OCT 2026
# ============================================================================
"""
Infrastructure Module

Service Bus classes are imported from infrastructure.service_bus directly
so that processes using in-memory queues do not open Azure clients.
"""

from infrastructure.queue import WorkQueue, MemoryWorkQueue
from infrastructure.queue_factory import QueueFactory, create_queue_factory
from infrastructure.storage import (
    ObjectStore,
    FileObjectStore,
    BlobObjectStore,
    object_store_for_url,
)

__all__ = [
    "WorkQueue",
    "MemoryWorkQueue",
    "QueueFactory",
    "create_queue_factory",
    "ObjectStore",
    "FileObjectStore",
    "BlobObjectStore",
    "object_store_for_url",
]
