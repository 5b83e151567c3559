# ============================================================================
# SERVICE BUS INFRASTRUCTURE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Infrastructure - Azure Service Bus work queue
# PURPOSE: WorkQueue implementation backed by Service Bus peek-lock receive
# CREATED: 16 OCT 2026
# ============================================================================
"""
Service Bus Infrastructure

WorkQueue over an Azure Service Bus queue.

Key Design Decisions:
    - Dual auth: connection string OR managed identity
    - Peek-lock receive; the received message is the receipt and
      delete_message() completes it
    - Lock expiry is the visibility timeout
    - Error categorization on send: permanent errors raise immediately,
      transient errors retry with exponential backoff

Usage:
    config = ServiceBusConfig.from_env()
    queue = ServiceBusWorkQueue("subsetter-queue", config)
    message = await queue.get_message(0)
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from azure.identity.aio import DefaultAzureCredential
from azure.servicebus import ServiceBusMessage
from azure.servicebus.aio import ServiceBusClient, ServiceBusReceiver, ServiceBusSender
from azure.servicebus.exceptions import (
    MessageLockLostError,
    MessageAlreadySettled,
    MessageSizeExceededError,
    MessagingEntityNotFoundError,
    OperationTimeoutError,
    ServiceBusAuthenticationError,
    ServiceBusAuthorizationError,
    ServiceBusCommunicationError,
    ServiceBusConnectionError,
    ServiceBusError,
    ServiceBusQuotaExceededError,
    ServiceBusServerBusyError,
)

from core.models import ReceivedMessage
from infrastructure.queue import WorkQueue

logger = logging.getLogger(__name__)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class ServiceBusConfig:
    """Service Bus configuration from environment."""

    fully_qualified_namespace: str = ""
    connection_string: Optional[str] = None
    retry_count: int = 3
    retry_delay_seconds: float = 1.0
    long_poll_seconds: float = 20.0
    # receive_messages treats a falsy max_wait_time as "wait forever"
    short_poll_seconds: float = 0.5

    @classmethod
    def from_env(cls) -> "ServiceBusConfig":
        """Load configuration from environment variables."""
        return cls(
            fully_qualified_namespace=os.environ.get(
                "SERVICE_BUS_NAMESPACE",
                os.environ.get("SERVICE_BUS_FQDN", "")
            ),
            connection_string=os.environ.get("SERVICE_BUS_CONNECTION_STRING"),
            retry_count=int(os.environ.get("SERVICE_BUS_RETRY_COUNT", "3")),
            retry_delay_seconds=float(os.environ.get("SERVICE_BUS_RETRY_DELAY", "1.0")),
            long_poll_seconds=float(os.environ.get("QUEUE_LONG_POLL_SECONDS", "20")),
            short_poll_seconds=float(os.environ.get("QUEUE_SHORT_POLL_SECONDS", "0.5")),
        )

    @property
    def use_connection_string(self) -> bool:
        """Check if connection string auth should be used."""
        return bool(self.connection_string)

    @property
    def is_configured(self) -> bool:
        return bool(self.connection_string or self.fully_qualified_namespace)


class ServiceBusClientFactory:
    """
    Shares one async client (and credential) across the queues of a process.
    """

    def __init__(self, config: ServiceBusConfig):
        self.config = config
        self._client: Optional[ServiceBusClient] = None
        self._credential: Optional[DefaultAzureCredential] = None

    def client(self) -> ServiceBusClient:
        if self._client is None:
            if self.config.use_connection_string:
                logger.info("Service Bus client using connection string")
                self._client = ServiceBusClient.from_connection_string(
                    self.config.connection_string,
                    retry_total=5,
                    retry_backoff_factor=0.5,
                    retry_backoff_max=60,
                    retry_mode="exponential",
                )
            else:
                logger.info(
                    f"Service Bus client using managed identity "
                    f"(namespace={self.config.fully_qualified_namespace})"
                )
                self._credential = DefaultAzureCredential()
                self._client = ServiceBusClient(
                    fully_qualified_namespace=self.config.fully_qualified_namespace,
                    credential=self._credential,
                    retry_total=5,
                    retry_backoff_factor=0.5,
                    retry_backoff_max=60,
                    retry_mode="exponential",
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
        if self._credential is not None:
            await self._credential.close()
            self._credential = None


# ============================================================================
# SERVICE BUS WORK QUEUE
# ============================================================================

class ServiceBusWorkQueue(WorkQueue):
    """WorkQueue backed by one Service Bus queue."""

    def __init__(
        self,
        queue_name: str,
        config: Optional[ServiceBusConfig] = None,
        client_factory: Optional[ServiceBusClientFactory] = None,
    ):
        self.name = queue_name
        self.config = config or ServiceBusConfig.from_env()
        self._factory = client_factory or ServiceBusClientFactory(self.config)
        self._owns_factory = client_factory is None
        self._receiver: Optional[ServiceBusReceiver] = None
        self._sender: Optional[ServiceBusSender] = None

    def _get_receiver(self) -> ServiceBusReceiver:
        if self._receiver is None:
            self._receiver = self._factory.client().get_queue_receiver(queue_name=self.name)
            logger.info(f"Receiver opened for queue: {self.name}")
        return self._receiver

    def _get_sender(self) -> ServiceBusSender:
        if self._sender is None:
            self._sender = self._factory.client().get_queue_sender(queue_name=self.name)
            logger.info(f"Sender opened for queue: {self.name}")
        return self._sender

    def _wait_time(self, wait_seconds: Optional[float]) -> float:
        if wait_seconds is None:
            return self.config.long_poll_seconds
        return max(wait_seconds, self.config.short_poll_seconds)

    async def get_messages(
        self, max_count: int, wait_seconds: Optional[float] = None
    ) -> List[ReceivedMessage]:
        messages = await self._get_receiver().receive_messages(
            max_message_count=max_count,
            max_wait_time=self._wait_time(wait_seconds),
        )
        return [ReceivedMessage(body=str(m), receipt=m) for m in messages]

    async def get_message(self, wait_seconds: Optional[float] = None) -> Optional[ReceivedMessage]:
        messages = await self.get_messages(1, wait_seconds)
        return messages[0] if messages else None

    async def delete_message(self, receipt) -> None:
        try:
            await self._get_receiver().complete_message(receipt)
            logger.debug(f"Completed message {receipt.message_id} on {self.name}")
        except (MessageLockLostError, MessageAlreadySettled) as e:
            # the message will be (or was) redelivered; status checks in the
            # store make the duplicate harmless
            logger.warning(f"Could not complete message on {self.name}: {type(e).__name__}")

    async def send_message(self, body: str) -> None:
        await self._send([ServiceBusMessage(body=body, content_type="application/json")])

    async def send_messages(self, bodies: List[str]) -> None:
        if not bodies:
            return
        sender = self._get_sender()
        batch = await sender.create_message_batch()
        pending = []
        for body in bodies:
            message = ServiceBusMessage(body=body, content_type="application/json")
            try:
                batch.add_message(message)
                pending.append(message)
            except MessageSizeExceededError:
                # batch full
                await self._send(batch)
                batch = await sender.create_message_batch()
                batch.add_message(message)
                pending = [message]
        if pending:
            await self._send(batch)

    async def _send(self, payload) -> None:
        sender = self._get_sender()
        for attempt in range(self.config.retry_count):
            try:
                await sender.send_messages(payload)
                return

            except (ServiceBusAuthenticationError, ServiceBusAuthorizationError) as e:
                logger.error(f"Auth failed for {self.name}: {e}")
                raise RuntimeError(f"Service Bus auth failed: {e}") from e

            except MessageSizeExceededError as e:
                logger.error(f"Message too large for {self.name}: {e}")
                raise RuntimeError(f"Message exceeds queue size limit: {e}") from e

            except MessagingEntityNotFoundError as e:
                logger.error(f"Queue '{self.name}' not found: {e}")
                raise RuntimeError(f"Queue '{self.name}' does not exist: {e}") from e

            except ServiceBusQuotaExceededError as e:
                logger.error(f"Service Bus quota exceeded: {e}")
                raise RuntimeError(f"Service Bus quota exceeded: {e}") from e

            except (OperationTimeoutError, ServiceBusServerBusyError,
                    ServiceBusConnectionError, ServiceBusCommunicationError, ServiceBusError) as e:
                logger.warning(
                    f"Transient error on attempt {attempt + 1}/{self.config.retry_count} "
                    f"sending to {self.name}: {type(e).__name__}"
                )
                if attempt == self.config.retry_count - 1:
                    raise RuntimeError(
                        f"Failed to send to {self.name} after {self.config.retry_count} attempts: {e}"
                    ) from e
                await asyncio.sleep(self.config.retry_delay_seconds * (2 ** attempt))

    async def close(self) -> None:
        if self._receiver is not None:
            await self._receiver.close()
            self._receiver = None
        if self._sender is not None:
            await self._sender.close()
            self._sender = None
        if self._owns_factory:
            await self._factory.close()
        logger.info(f"Queue closed: {self.name}")


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ServiceBusConfig",
    "ServiceBusClientFactory",
    "ServiceBusWorkQueue",
]
