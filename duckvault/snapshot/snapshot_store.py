"""
Snapshot store for DuckDB database files.

The SnapshotStore binds one object store connection, one bucket and one
logical database name, and moves the database file between local disk and
the object store:

    store(path)     local file -> object (replaces previous object)
    retrieve(path)  object -> local file (stage, verify, rename)
    info()          object metadata, no payload transfer
    delete()        remove the object

Object metadata:
    description:   "DuckDB database file"
    content type:  "application/x-duckdb"
    timestamp:     store time, UTC, RFC 3339 (2024-01-02T03:04:05Z)
    sha256:        "sha256:<hex>" of the payload

Invariants:
    - Exactly one live object per (bucket, name); store() is last-writer-wins
    - retrieve() never leaves a partial destination file: bytes are staged
      in a temporary file beside the destination and renamed on success
    - retrieve() of a missing object creates no file at all
    - The sha256 header always describes the uploaded bytes; a source
      file modified during store() fails with SourceFileError
    - Every failure is raised as a VaultError naming the operation

Concurrency:
    Single caller, sequential operations. No locking across handles or
    processes: concurrent store() calls to the same name resolve by the
    backend's last-write-wins.

How to change safely:
    - Add metadata headers, don't rename existing ones (old snapshots)
    - Keep the stage-then-rename policy for retrieve()
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import tempfile
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

from ..errors import (
    BucketError,
    ConnectionError,
    DestinationError,
    NotFoundError,
    SourceFileError,
    StoreTransportError,
)
from ..objectstore.base import (
    BucketStatus,
    BucketUnavailableError,
    ObjectInfo,
    ObjectMeta,
    ObjectNotFoundError,
    ObjectStore,
    ObjectStoreConnectionError,
    ObjectStoreError,
)

logger = logging.getLogger(__name__)

BUCKET_DESCRIPTION = "DuckDB database storage"
SNAPSHOT_DESCRIPTION = "DuckDB database file"
SNAPSHOT_CONTENT_TYPE = "application/x-duckdb"
TIMESTAMP_HEADER = "timestamp"
CHECKSUM_HEADER = "sha256"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DEFAULT_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class SnapshotInfo:
    """Metadata of a stored snapshot.

    Attributes:
        name: Logical database name (object key)
        bucket: Bucket holding the snapshot
        size_bytes: Payload size
        modified_at: Store-assigned modification time
        description: Human-readable description
        content_type: Content type header
        stored_at: Timestamp header written at store time
        checksum: "sha256:<hex>" header, if present
    """

    name: str
    bucket: str
    size_bytes: int
    modified_at: datetime
    description: str
    content_type: str
    stored_at: str | None
    checksum: str | None

    @classmethod
    def from_object_info(cls, info: ObjectInfo) -> SnapshotInfo:
        return cls(
            name=info.name,
            bucket=info.bucket,
            size_bytes=info.size,
            modified_at=info.modified_at,
            description=info.description,
            content_type=info.content_type,
            stored_at=info.headers.get(TIMESTAMP_HEADER),
            checksum=info.headers.get(CHECKSUM_HEADER),
        )


def compute_checksum(file_path: str | Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> tuple[str, int]:
    """Compute SHA-256 checksum and size of a file.

    Returns:
        ("sha256:<hex>", size_bytes)
    """
    sha256 = hashlib.sha256()
    size = 0
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            sha256.update(chunk)
            size += len(chunk)
    return f"sha256:{sha256.hexdigest()}", size


class SnapshotStore:
    """Stores one DuckDB database file as one named object.

    Construct with ``await SnapshotStore.open(...)``; the bucket is created
    on first use and reused afterwards.

    Attributes:
        object_store: Connected ObjectStore backend
        bucket: Bucket name
        name: Logical database name, used verbatim as the object key
        bucket_status: Whether open() created the bucket or found it
        chunk_size: Read/write chunk size for streamed transfers
        verify_checksum: Check the sha256 header on retrieve()

    Example:
        >>> store = await SnapshotStore.open(object_store, "duckdb", "mydb.db")
        >>> await store.store("./tmp/mydb.db")
        >>> info = await store.info()
        >>> await store.retrieve("./tmp/mydb_retrieved.db")
    """

    def __init__(
        self,
        object_store: ObjectStore,
        bucket: str,
        name: str,
        bucket_status: BucketStatus,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        verify_checksum: bool = True,
    ) -> None:
        """Bind an already ensured bucket. Prefer SnapshotStore.open()."""
        self.object_store = object_store
        self.bucket = bucket
        self.name = name
        self.bucket_status = bucket_status
        self.chunk_size = chunk_size
        self.verify_checksum = verify_checksum

    @classmethod
    async def open(
        cls,
        object_store: ObjectStore,
        bucket: str,
        name: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        verify_checksum: bool = True,
    ) -> SnapshotStore:
        """Create or open the bucket and return a bound handle.

        Args:
            object_store: Connected ObjectStore backend
            bucket: Bucket name (non-empty)
            name: Database name (non-empty)
            chunk_size: Streaming chunk size
            verify_checksum: Check the sha256 header on retrieve()

        Raises:
            ValueError: If bucket or name is empty
            ConnectionError: If the object store is unreachable
            BucketError: If the bucket exists but is unusable
        """
        if not bucket:
            raise ValueError("bucket must not be empty")
        if not name:
            raise ValueError("name must not be empty")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

        if not object_store.is_connected:
            raise ConnectionError("Object store is not connected", operation="open")

        try:
            status = await object_store.ensure_bucket(bucket, BUCKET_DESCRIPTION)
        except ObjectStoreConnectionError as e:
            raise ConnectionError(
                f"Failed to reach object store: {e}", operation="open"
            ) from e
        except BucketUnavailableError as e:
            raise BucketError(f"Bucket is unusable: {e}", bucket=bucket) from e
        except ObjectStoreError as e:
            raise BucketError(f"Failed to create/get bucket: {e}", bucket=bucket) from e

        logger.info(
            "Opened snapshot store",
            extra={"bucket": bucket, "snapshot_name": name, "bucket_status": status.value},
        )
        return cls(
            object_store,
            bucket,
            name,
            status,
            chunk_size=chunk_size,
            verify_checksum=verify_checksum,
        )

    def _transport_error(self, operation: str, error: Exception) -> StoreTransportError:
        return StoreTransportError(
            f"Object store failure: {error}",
            operation=operation,
            bucket=self.bucket,
            key=self.name,
        )

    def _not_found(self, operation: str) -> NotFoundError:
        return NotFoundError(
            f"No snapshot '{self.name}' in bucket '{self.bucket}'",
            operation=operation,
            bucket=self.bucket,
            key=self.name,
        )

    async def _read_chunks(
        self, f: BinaryIO, path: Path, checksum: str, size: int
    ) -> AsyncIterator[bytes]:
        """Yield the file in chunks, then check it against the checksum pass.

        A mismatch raises from inside the iterator, so the backend discards
        the upload and the previous snapshot stays in place.
        """
        loop = asyncio.get_running_loop()
        sha256 = hashlib.sha256()
        sent = 0
        while True:
            try:
                chunk = await loop.run_in_executor(None, f.read, self.chunk_size)
            except OSError as e:
                raise SourceFileError(f"Failed to read database file: {e}", path=str(path)) from e
            if not chunk:
                break
            sha256.update(chunk)
            sent += len(chunk)
            yield chunk

        if sent != size or f"sha256:{sha256.hexdigest()}" != checksum:
            raise SourceFileError(
                f"Database file changed during store ({size} bytes hashed, {sent} bytes read)",
                path=str(path),
            )

    async def store(self, db_file_path: str | Path) -> SnapshotInfo:
        """Upload the local file as this handle's snapshot object.

        Args:
            db_file_path: Path to a readable local file

        Returns:
            SnapshotInfo of the stored object

        Raises:
            SourceFileError: If the file cannot be opened or read, or changes
                while it is being uploaded
            StoreTransportError: If the upload fails
        """
        path = Path(db_file_path)
        loop = asyncio.get_running_loop()

        try:
            checksum, size = await loop.run_in_executor(
                None, compute_checksum, str(path), self.chunk_size
            )
            f = open(path, "rb")
        except OSError as e:
            raise SourceFileError(f"Failed to open database file: {e}", path=str(path)) from e

        meta = ObjectMeta(
            name=self.name,
            description=SNAPSHOT_DESCRIPTION,
            content_type=SNAPSHOT_CONTENT_TYPE,
            headers={
                TIMESTAMP_HEADER: datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT),
                CHECKSUM_HEADER: checksum,
            },
        )

        with f:
            try:
                chunks = self._read_chunks(f, path, checksum, size)
                info = await self.object_store.put(self.bucket, self.name, meta, chunks)
            except ObjectStoreError as e:
                raise self._transport_error("store", e) from e

        snapshot = SnapshotInfo.from_object_info(info)
        logger.info(
            "Stored snapshot",
            extra={
                "bucket": self.bucket,
                "snapshot_name": self.name,
                "size_bytes": snapshot.size_bytes,
                "source_size_bytes": size,
                "checksum": checksum,
            },
        )
        return snapshot

    async def retrieve(self, output_file_path: str | Path) -> SnapshotInfo:
        """Download the snapshot object to a local file.

        The parent directory is created if missing. Bytes are staged in a
        temporary file beside the destination and renamed over it only
        after the size (and checksum, if enabled) match.

        Args:
            output_file_path: Destination path

        Returns:
            SnapshotInfo of the retrieved object

        Raises:
            NotFoundError: If no snapshot exists (no file is created)
            StoreTransportError: If the download fails or fails verification
            DestinationError: If the destination cannot be created or written
        """
        output_path = Path(output_file_path)
        loop = asyncio.get_running_loop()

        try:
            reader = await self.object_store.get(self.bucket, self.name)
        except ObjectNotFoundError as e:
            raise self._not_found("retrieve") from e
        except ObjectStoreError as e:
            raise self._transport_error("retrieve", e) from e

        async with reader:
            try:
                output_path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{output_path.name}.", suffix=".part", dir=output_path.parent
                )
            except OSError as e:
                raise DestinationError(
                    f"Failed to create output file: {e}", path=str(output_path)
                ) from e

            tmp_path = Path(tmp_name)
            sha256 = hashlib.sha256()
            received = 0

            try:
                with os.fdopen(fd, "wb") as f:
                    async for chunk in reader.iter_chunks(self.chunk_size):
                        sha256.update(chunk)
                        received += len(chunk)
                        await loop.run_in_executor(None, f.write, chunk)

                self._check_download(reader.info, received, f"sha256:{sha256.hexdigest()}")
                os.replace(tmp_path, output_path)

            except ObjectStoreError as e:
                raise self._transport_error("retrieve", e) from e
            except OSError as e:
                raise DestinationError(
                    f"Failed to write database to file: {e}", path=str(output_path)
                ) from e
            finally:
                # No-op after a successful rename
                tmp_path.unlink(missing_ok=True)

        snapshot = SnapshotInfo.from_object_info(reader.info)
        logger.info(
            "Retrieved snapshot",
            extra={
                "bucket": self.bucket,
                "snapshot_name": self.name,
                "size_bytes": received,
                "output_path": str(output_path),
            },
        )
        return snapshot

    def _check_download(self, info: ObjectInfo, received: int, checksum: str) -> None:
        if received != info.size:
            raise StoreTransportError(
                f"Truncated download: received {received} of {info.size} bytes",
                operation="retrieve",
                bucket=self.bucket,
                key=self.name,
            )

        expected = info.headers.get(CHECKSUM_HEADER)
        if self.verify_checksum and expected and expected != checksum:
            raise StoreTransportError(
                f"Checksum mismatch: expected {expected}, got {checksum}",
                operation="retrieve",
                bucket=self.bucket,
                key=self.name,
            )

    async def info(self) -> SnapshotInfo:
        """Get snapshot metadata without transferring the payload.

        Raises:
            NotFoundError: If no snapshot exists
            StoreTransportError: For other backend failures
        """
        try:
            info = await self.object_store.get_info(self.bucket, self.name)
        except ObjectNotFoundError as e:
            raise self._not_found("info") from e
        except ObjectStoreError as e:
            raise self._transport_error("info", e) from e
        return SnapshotInfo.from_object_info(info)

    async def delete(self) -> None:
        """Remove the snapshot object.

        Raises:
            NotFoundError: If no snapshot exists
            StoreTransportError: For other backend failures
        """
        try:
            await self.object_store.delete(self.bucket, self.name)
        except ObjectNotFoundError as e:
            raise self._not_found("delete") from e
        except ObjectStoreError as e:
            raise self._transport_error("delete", e) from e

        logger.info(
            "Deleted snapshot",
            extra={"bucket": self.bucket, "snapshot_name": self.name},
        )
