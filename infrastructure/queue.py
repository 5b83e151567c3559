# ============================================================================
# WORK QUEUE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Infrastructure - Queue abstraction
# PURPOSE: At-least-once, visibility-timeout queue interface + in-memory queue
# CREATED: 16 OCT 2026
# EXPORTS: WorkQueue, MemoryWorkQueue
# ============================================================================
"""
Work Queue

Interface shared by the Service Bus queue and the in-process queue.

Semantics:
    - get_message(0) returns immediately; get_message() waits up to the
      queue's long-poll interval
    - a received message is hidden until deleted or until its visibility
      timeout expires, after which it is delivered again
    - the receipt is opaque to callers

Usage:
    queue = MemoryWorkQueue("subsetter")
    await queue.send_message(body)
    message = await queue.get_message(0)
    if message:
        await queue.delete_message(message.receipt)
"""

import asyncio
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

from core.models import ReceivedMessage

logger = logging.getLogger(__name__)


class WorkQueue(ABC):
    """At-least-once message queue."""

    name: str

    @abstractmethod
    async def get_message(self, wait_seconds: Optional[float] = None) -> Optional[ReceivedMessage]:
        """
        Receive one message.

        Args:
            wait_seconds: 0 for a short poll, None for the default long poll
        """

    @abstractmethod
    async def get_messages(
        self, max_count: int, wait_seconds: Optional[float] = None
    ) -> List[ReceivedMessage]:
        """Receive up to max_count messages."""

    @abstractmethod
    async def delete_message(self, receipt) -> None:
        """Acknowledge a received message so it is not delivered again."""

    @abstractmethod
    async def send_message(self, body: str) -> None:
        """Enqueue one message."""

    async def send_messages(self, bodies: List[str]) -> None:
        for body in bodies:
            await self.send_message(body)

    async def close(self) -> None:
        """Release connections."""


@dataclass
class _Entry:
    body: str
    visible_at: float = 0.0
    receipt: Optional[str] = None
    deliveries: int = 0


class MemoryWorkQueue(WorkQueue):
    """
    In-process queue with visibility timeouts.

    Used for local runs and tests. Delivery order is FIFO by send time
    among visible messages.
    """

    def __init__(
        self,
        name: str,
        long_poll_seconds: float = 20.0,
        visibility_timeout_seconds: float = 300.0,
    ):
        self.name = name
        self.long_poll_seconds = long_poll_seconds
        self.visibility_timeout_seconds = visibility_timeout_seconds
        self._entries: List[_Entry] = []
        self._by_receipt: Dict[str, _Entry] = {}
        self._condition = asyncio.Condition()

    def __len__(self) -> int:
        return len(self._entries)

    def _take(self, max_count: int) -> List[ReceivedMessage]:
        now = time.monotonic()
        taken = []
        for entry in self._entries:
            if len(taken) >= max_count:
                break
            if entry.visible_at > now:
                continue
            if entry.receipt:
                self._by_receipt.pop(entry.receipt, None)
            entry.receipt = uuid.uuid4().hex
            entry.visible_at = now + self.visibility_timeout_seconds
            entry.deliveries += 1
            if entry.deliveries > 1:
                logger.warning(
                    f"Redelivering message on queue {self.name} (delivery {entry.deliveries})"
                )
            self._by_receipt[entry.receipt] = entry
            taken.append(ReceivedMessage(body=entry.body, receipt=entry.receipt))
        return taken

    def _next_visible_in(self) -> Optional[float]:
        now = time.monotonic()
        pending = [e.visible_at - now for e in self._entries if e.visible_at > now]
        return min(pending) if pending else None

    async def get_messages(
        self, max_count: int, wait_seconds: Optional[float] = None
    ) -> List[ReceivedMessage]:
        wait = self.long_poll_seconds if wait_seconds is None else wait_seconds
        deadline = time.monotonic() + wait

        async with self._condition:
            while True:
                taken = self._take(max_count)
                if taken:
                    return taken

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return []

                next_visible = self._next_visible_in()
                timeout = remaining if next_visible is None else min(remaining, next_visible)
                try:
                    await asyncio.wait_for(self._condition.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    pass

    async def get_message(self, wait_seconds: Optional[float] = None) -> Optional[ReceivedMessage]:
        messages = await self.get_messages(1, wait_seconds)
        return messages[0] if messages else None

    async def delete_message(self, receipt) -> None:
        async with self._condition:
            entry = self._by_receipt.pop(receipt, None)
            if entry is None:
                # receipt expired and the message was redelivered, or already deleted
                logger.debug(f"Delete with unknown receipt on queue {self.name}")
                return
            self._entries.remove(entry)

    async def send_message(self, body: str) -> None:
        async with self._condition:
            self._entries.append(_Entry(body=body))
            self._condition.notify_all()

    async def send_messages(self, bodies: List[str]) -> None:
        async with self._condition:
            for body in bodies:
                self._entries.append(_Entry(body=body))
            self._condition.notify_all()


__all__ = ["WorkQueue", "MemoryWorkQueue"]
