"""
In-memory object store implementation for testing.

This module provides a simple in-memory object store backend for:
- Unit tests
- Integration tests
- Local development without MinIO or AWS

Invariants:
    - All data is lost on process exit (or close())
    - put() buffers the whole stream and commits it in one step, so a
      failed upload never replaces the previous object
    - Same error semantics as the S3 backend

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the ObjectStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Optional

from .base import (
    BucketStatus,
    ObjectInfo,
    ObjectMeta,
    ObjectNotFoundError,
    ObjectStoreConnectionError,
    ObjectStoreError,
)

logger = logging.getLogger(__name__)


@dataclass
class InMemoryObject:
    """A stored object."""
    data: bytes
    info: ObjectInfo


@dataclass
class InMemoryBucket:
    """In-memory bucket storage."""
    description: str = ""
    objects: Dict[str, InMemoryObject] = field(default_factory=dict)


@dataclass
class _InjectedFailure:
    after_bytes: int
    message: str


class InMemoryObjectReader:
    """Reader over an in-memory object snapshot."""

    def __init__(self, data: bytes, info: ObjectInfo, failure: Optional[_InjectedFailure] = None) -> None:
        self.info = info
        self._data = data
        self._failure = failure

    async def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        sent = 0
        for start in range(0, len(self._data), chunk_size):
            chunk = self._data[start:start + chunk_size]
            if self._failure and sent + len(chunk) > self._failure.after_bytes:
                partial = self._failure.after_bytes - sent
                if partial > 0:
                    yield chunk[:partial]
                raise ObjectStoreError(self._failure.message)
            sent += len(chunk)
            yield chunk
            await asyncio.sleep(0)

    async def __aenter__(self) -> InMemoryObjectReader:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._data = b""


class InMemoryObjectStore:
    """In-memory implementation of ObjectStore for testing.

    Stores every bucket and object in process memory. Useful for:
    - Unit tests that need object store behavior without a network
    - Integration tests of the snapshot round trip
    - Running the demo without an S3 endpoint

    Thread safety:
        Uses an asyncio lock around commits. Safe to use from
        multiple coroutines.

    Example:
        >>> store = InMemoryObjectStore()
        >>> await store.connect()
        >>> await store.ensure_bucket("duckdb")
        BucketStatus.CREATED
    """

    def __init__(self) -> None:
        self._buckets: Dict[str, InMemoryBucket] = {}
        self._connected = False
        self._lock = asyncio.Lock()
        self._put_failure: Optional[_InjectedFailure] = None
        self._get_failure: Optional[_InjectedFailure] = None

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryObjectStore connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._buckets.clear()
        logger.debug("InMemoryObjectStore closed")

    def _require_connection(self) -> None:
        if not self._connected:
            raise ObjectStoreConnectionError("Not connected")

    def _bucket(self, bucket: str) -> InMemoryBucket:
        try:
            return self._buckets[bucket]
        except KeyError:
            raise ObjectStoreError(f"Bucket '{bucket}' does not exist")

    def _object(self, bucket: str, key: str) -> InMemoryObject:
        obj = self._bucket(bucket).objects.get(key)
        if obj is None:
            raise ObjectNotFoundError(f"Object '{key}' not found in bucket '{bucket}'")
        return obj

    async def ensure_bucket(self, bucket: str, description: str = "") -> BucketStatus:
        """Create bucket if missing."""
        self._require_connection()

        async with self._lock:
            if bucket in self._buckets:
                return BucketStatus.EXISTED
            self._buckets[bucket] = InMemoryBucket(description=description)
            logger.debug(f"Created in-memory bucket {bucket}")
            return BucketStatus.CREATED

    async def put(
        self,
        bucket: str,
        key: str,
        meta: ObjectMeta,
        chunks: AsyncIterator[bytes],
    ) -> ObjectInfo:
        """Buffer the stream, then replace the stored object in one step."""
        self._require_connection()
        target = self._bucket(bucket)

        failure, self._put_failure = self._put_failure, None
        buffer = bytearray()
        async for chunk in chunks:
            if failure and len(buffer) + len(chunk) > failure.after_bytes:
                raise ObjectStoreError(failure.message)
            buffer.extend(chunk)

        data = bytes(buffer)
        info = ObjectInfo(
            bucket=bucket,
            name=key,
            size=len(data),
            modified_at=datetime.now(timezone.utc),
            description=meta.description,
            content_type=meta.content_type,
            headers={k.lower(): v for k, v in meta.headers.items()},
            etag=hashlib.md5(data).hexdigest(),
        )

        async with self._lock:
            target.objects[key] = InMemoryObject(data=data, info=info)

        return info

    async def get(self, bucket: str, key: str) -> InMemoryObjectReader:
        """Open an object for reading."""
        self._require_connection()
        obj = self._object(bucket, key)
        failure, self._get_failure = self._get_failure, None
        return InMemoryObjectReader(obj.data, obj.info, failure)

    async def get_info(self, bucket: str, key: str) -> ObjectInfo:
        """Get object metadata."""
        self._require_connection()
        return self._object(bucket, key).info

    async def delete(self, bucket: str, key: str) -> None:
        """Delete an object."""
        self._require_connection()
        async with self._lock:
            self._object(bucket, key)
            del self._buckets[bucket].objects[key]

    # Testing helpers

    def fail_next_put(self, after_bytes: int = 0, message: str = "injected upload failure") -> None:
        """Make the next put() fail once it has received more than after_bytes."""
        self._put_failure = _InjectedFailure(after_bytes, message)

    def fail_next_get(self, after_bytes: int = 0, message: str = "injected download failure") -> None:
        """Make the next reader fail once it has yielded after_bytes."""
        self._get_failure = _InjectedFailure(after_bytes, message)

    def bucket_exists(self, bucket: str) -> bool:
        """Check whether a bucket exists."""
        return bucket in self._buckets

    def get_object_bytes(self, bucket: str, key: str) -> Optional[bytes]:
        """Get raw stored bytes, or None if absent."""
        obj = self._buckets.get(bucket, InMemoryBucket()).objects.get(key)
        return obj.data if obj else None

    def overwrite_object_bytes(self, bucket: str, key: str, data: bytes) -> None:
        """Replace stored bytes while keeping metadata (simulates corruption)."""
        obj = self._object(bucket, key)
        obj.data = data

    def get_object_count(self, bucket: str) -> int:
        """Get number of objects in a bucket."""
        return len(self._buckets.get(bucket, InMemoryBucket()).objects)
