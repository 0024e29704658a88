"""
Base protocol and types for the object store abstraction.

This module defines the ObjectStore protocol that all backends must
implement, along with the common types for object metadata, readers and
errors.

Invariants:
    - put() only returns after the object is durably stored
    - A put() that fails never leaves a partially written object visible
      on the shipped backends (multipart uploads are aborted)
    - get() raises ObjectNotFoundError before any payload is read
    - ensure_bucket() is idempotent and never deletes anything

How to change safely:
    - Protocol changes require updating all implementations
    - Add new methods as optional with default implementations
    - Keep metadata keys lowercase; S3 lowercases user metadata keys
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import (
    TYPE_CHECKING,
    AsyncIterator,
    Dict,
    Optional,
    Protocol,
    runtime_checkable,
)
import logging

if TYPE_CHECKING:
    from ..config import VaultConfig

logger = logging.getLogger(__name__)


class ObjectStoreError(Exception):
    """Base exception for object store operations."""
    pass


class ObjectStoreConnectionError(ObjectStoreError):
    """Connection to the object store backend failed."""
    pass


class ObjectNotFoundError(ObjectStoreError):
    """No object exists under the requested key."""
    pass


class BucketUnavailableError(ObjectStoreError):
    """Bucket exists but cannot be opened (owned elsewhere, access denied)."""
    pass


class BucketStatus(Enum):
    """Outcome of ensure_bucket()."""

    CREATED = "created"
    EXISTED = "existed"


@dataclass(frozen=True)
class ObjectMeta:
    """Caller-settable metadata attached to an object on put().

    Attributes:
        name: Object key
        description: Human-readable description
        content_type: MIME-like content type
        headers: Additional key/value metadata (lowercase keys)
    """
    name: str
    description: str = ""
    content_type: str = "application/octet-stream"
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ObjectInfo:
    """Stored object metadata, including store-assigned fields.

    Attributes:
        bucket: Bucket holding the object
        name: Object key
        size: Payload size in bytes (store-assigned)
        modified_at: Last modification time, UTC (store-assigned)
        description: Human-readable description
        content_type: MIME-like content type
        headers: Additional key/value metadata (lowercase keys)
        etag: Backend entity tag, if any
    """
    bucket: str
    name: str
    size: int
    modified_at: datetime
    description: str = ""
    content_type: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    etag: Optional[str] = None


class ObjectReader(Protocol):
    """Readable stream over a stored object.

    Use as an async context manager so the underlying stream is released:

        >>> async with await store.get("bucket", "key") as reader:
        ...     async for chunk in reader.iter_chunks(1024 * 1024):
        ...         f.write(chunk)
    """

    info: ObjectInfo

    def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        """Yield the payload in chunks of at most chunk_size bytes.

        Raises:
            ObjectStoreError: If the stream fails mid-read
        """
        ...

    async def __aenter__(self) -> ObjectReader:
        ...

    async def __aexit__(self, exc_type, exc, tb) -> None:
        ...


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol for object store backends.

    Durability contract:
        - put() returns only after the backend acknowledged the full payload
        - A later get() of the same key observes the last acknowledged put()

    Concurrency:
        - Concurrent put() calls to the same key resolve by the backend's
          own last-write-wins; no locking is provided

    Example:
        >>> store = S3ObjectStore(config.s3)
        >>> await store.connect()
        >>> await store.ensure_bucket("duckdb", "DuckDB database storage")
        >>> info = await store.put("duckdb", "mydb.db", meta, chunks)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the backend.

        Raises:
            ObjectStoreConnectionError: If connection fails
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and release resources."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected to the backend."""
        ...

    @abstractmethod
    async def ensure_bucket(self, bucket: str, description: str = "") -> BucketStatus:
        """Create a bucket, or open it if it already exists.

        Returns:
            BucketStatus.CREATED or BucketStatus.EXISTED

        Raises:
            ObjectStoreConnectionError: If the backend is unreachable
            BucketUnavailableError: If the bucket exists but is unusable
            ObjectStoreError: For other failures
        """
        ...

    @abstractmethod
    async def put(
        self,
        bucket: str,
        key: str,
        meta: ObjectMeta,
        chunks: AsyncIterator[bytes],
    ) -> ObjectInfo:
        """Stream chunks into an object, replacing any previous object.

        Exceptions raised by the chunk iterator itself propagate unchanged
        after the partial upload has been discarded.

        Raises:
            ObjectStoreConnectionError: If not connected
            ObjectStoreError: If the upload fails
        """
        ...

    @abstractmethod
    async def get(self, bucket: str, key: str) -> ObjectReader:
        """Open an object for streamed reading.

        Raises:
            ObjectNotFoundError: If no object exists under key
            ObjectStoreError: For other failures
        """
        ...

    @abstractmethod
    async def get_info(self, bucket: str, key: str) -> ObjectInfo:
        """Get object metadata without transferring the payload.

        Raises:
            ObjectNotFoundError: If no object exists under key
            ObjectStoreError: For other failures
        """
        ...

    @abstractmethod
    async def delete(self, bucket: str, key: str) -> None:
        """Delete an object.

        Raises:
            ObjectNotFoundError: If no object exists under key
            ObjectStoreError: For other failures
        """
        ...


def create_object_store(config: "VaultConfig") -> ObjectStore:
    """Factory function to create an object store from configuration.

    Args:
        config: duckvault configuration

    Returns:
        Appropriate ObjectStore implementation (not yet connected)

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import ObjectStoreBackend
    from .memory import InMemoryObjectStore
    from .s3 import S3ObjectStore

    if config.object_store.backend == ObjectStoreBackend.S3:
        return S3ObjectStore(config.s3)
    elif config.object_store.backend == ObjectStoreBackend.MEMORY:
        return InMemoryObjectStore()
    else:
        raise ValueError(f"Unsupported object store backend: {config.object_store.backend}")
