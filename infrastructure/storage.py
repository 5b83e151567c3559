# ============================================================================
# OBJECT STORAGE INFRASTRUCTURE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Infrastructure - Object store for outputs and logs
# PURPOSE: exists/read/write/list over local files and Azure Blob Storage
# CREATED: 16 OCT 2026
# ============================================================================
"""
Object Storage Infrastructure

ObjectStore is the small surface the executor needs: check, read JSON,
write, and list what a worker left in its output directory.

Implementations:
- FileObjectStore: file:// URLs and bare paths (local runs, tests)
- BlobObjectStore: https://<account>.blob.core.windows.net/<container>/<path>

BlobObjectStore uses DefaultAzureCredential (or ManagedIdentityCredential
when AZURE_CLIENT_ID is set) and caches container clients per account.
The blob SDK client is synchronous, so calls run in a worker thread.

Usage:
    store = object_store_for_url(url)
    if await store.exists(url):
        logs = await store.read_json(url)
"""

import asyncio
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings

logger = logging.getLogger(__name__)


class ObjectStore(ABC):
    """Async object store."""

    @abstractmethod
    async def exists(self, url: str) -> bool:
        ...

    @abstractmethod
    async def read_text(self, url: str) -> str:
        ...

    async def read_json(self, url: str) -> Any:
        return json.loads(await self.read_text(url))

    @abstractmethod
    async def write(self, content: str, url: str, content_type: str = "application/json") -> None:
        ...

    @abstractmethod
    async def list_keys(self, url: str) -> List[str]:
        """URLs of every object under a directory URL."""


# ============================================================================
# LOCAL FILES
# ============================================================================

class FileObjectStore(ObjectStore):
    """Object store over the local filesystem."""

    @staticmethod
    def _path(url: str) -> Path:
        if url.startswith("file://"):
            return Path(unquote(urlparse(url).path))
        return Path(url)

    @staticmethod
    def _to_url(template: str, path: Path) -> str:
        return path.as_uri() if template.startswith("file://") else str(path)

    async def exists(self, url: str) -> bool:
        return self._path(url).exists()

    async def read_text(self, url: str) -> str:
        return await asyncio.to_thread(self._path(url).read_text, encoding="utf-8")

    async def write(self, content: str, url: str, content_type: str = "application/json") -> None:
        path = self._path(url)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_write)

    async def list_keys(self, url: str) -> List[str]:
        root = self._path(url)
        if not root.is_dir():
            return []
        return [self._to_url(url, p) for p in sorted(root.rglob("*")) if p.is_file()]


# ============================================================================
# AZURE BLOB STORAGE
# ============================================================================

def parse_blob_url(url: str) -> Tuple[str, str, str]:
    """
    Split a blob URL into (account, container, blob path).

    Raises:
        ValueError: If the URL is not a blob endpoint URL
    """
    parsed = urlparse(url)
    host = parsed.netloc
    if ".blob." not in host:
        raise ValueError(f"Not an Azure blob URL: {url}")
    account = host.split(".")[0]
    parts = parsed.path.lstrip("/").split("/", 1)
    container = parts[0]
    blob = unquote(parts[1]) if len(parts) > 1 else ""
    return account, container, blob


class BlobObjectStore(ObjectStore):
    """
    Azure Blob Storage object store.

    Multi-instance singleton pattern: one instance per storage account.
    """

    _instances: Dict[str, "BlobObjectStore"] = {}
    _instances_lock = threading.Lock()

    def __new__(cls, account_name: str):
        with cls._instances_lock:
            if account_name not in cls._instances:
                instance = super().__new__(cls)
                instance._initialized = False
                cls._instances[account_name] = instance
            return cls._instances[account_name]

    def __init__(self, account_name: str):
        if getattr(self, "_initialized", False):
            return

        self.account_name = account_name
        self._container_clients: Dict[str, Any] = {}
        self._container_clients_lock = threading.Lock()
        self._blob_service: Optional[BlobServiceClient] = None
        self._credential = None

        self._initialized = True
        logger.info(f"BlobObjectStore initialized for account: {self.account_name}")

    def _get_credential(self):
        """Get Azure credential (lazy initialization)."""
        if self._credential is None:
            client_id = os.environ.get("AZURE_CLIENT_ID")
            if client_id:
                from azure.identity import ManagedIdentityCredential
                self._credential = ManagedIdentityCredential(client_id=client_id)
                logger.debug("ManagedIdentityCredential initialized with client_id")
            else:
                from azure.identity import DefaultAzureCredential
                self._credential = DefaultAzureCredential()
                logger.debug("DefaultAzureCredential initialized")
        return self._credential

    def _get_blob_service(self) -> BlobServiceClient:
        if self._blob_service is None:
            account_url = f"https://{self.account_name}.blob.core.windows.net"
            self._blob_service = BlobServiceClient(
                account_url=account_url,
                credential=self._get_credential(),
            )
            logger.debug(f"BlobServiceClient initialized for {account_url}")
        return self._blob_service

    def _get_container_client(self, container: str):
        """Cached container client, created under a lock."""
        if container in self._container_clients:
            return self._container_clients[container]

        with self._container_clients_lock:
            if container not in self._container_clients:
                self._container_clients[container] = (
                    self._get_blob_service().get_container_client(container)
                )
                logger.debug(f"Created container client for: {container}")
            return self._container_clients[container]

    def _blob_client(self, url: str):
        _, container, blob = parse_blob_url(url)
        return self._get_container_client(container).get_blob_client(blob)

    async def exists(self, url: str) -> bool:
        return await asyncio.to_thread(self._blob_client(url).exists)

    async def read_text(self, url: str) -> str:
        def _read() -> str:
            return self._blob_client(url).download_blob().readall().decode("utf-8")

        try:
            return await asyncio.to_thread(_read)
        except ResourceNotFoundError as e:
            raise FileNotFoundError(url) from e

    async def write(self, content: str, url: str, content_type: str = "application/json") -> None:
        def _write() -> None:
            self._blob_client(url).upload_blob(
                content.encode("utf-8"),
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )

        await asyncio.to_thread(_write)

    async def list_keys(self, url: str) -> List[str]:
        _, container, prefix = parse_blob_url(url)
        base = f"https://{urlparse(url).netloc}/{container}/"

        def _list() -> List[str]:
            client = self._get_container_client(container)
            return [base + blob.name for blob in client.list_blobs(name_starts_with=prefix)]

        return await asyncio.to_thread(_list)


# ============================================================================
# FACTORY
# ============================================================================

_file_store = FileObjectStore()


def object_store_for_url(url: str) -> ObjectStore:
    """Pick the object store that serves a URL."""
    if url.startswith("https://") and ".blob." in url:
        account, _, _ = parse_blob_url(url)
        return BlobObjectStore(account)
    if url.startswith("file://") or "://" not in url:
        return _file_store
    raise ValueError(f"Unsupported object store URL: {url}")


__all__ = [
    "ObjectStore",
    "FileObjectStore",
    "BlobObjectStore",
    "parse_blob_url",
    "object_store_for_url",
]
