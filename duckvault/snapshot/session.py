"""
Configuration-driven SnapshotStore lifecycle.

open_snapshot_store() wires an object store backend from VaultConfig,
connects it, binds a SnapshotStore and closes the backend on exit. The CLI
and the demo tool use it; library callers that already own a connected
ObjectStore can call SnapshotStore.open() directly.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ..config import VaultConfig
from ..errors import ConnectionError
from ..objectstore.base import ObjectStore, ObjectStoreConnectionError, create_object_store
from .snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_snapshot_store(
    config: VaultConfig,
    object_store: ObjectStore | None = None,
) -> AsyncIterator[SnapshotStore]:
    """Yield a SnapshotStore bound to config's bucket and snapshot name.

    Args:
        config: duckvault configuration
        object_store: Backend to use instead of creating one from config.
            A passed-in backend is connected if needed but never closed here.

    Raises:
        ConnectionError: If the backend cannot be connected
        BucketError: If the bucket is unusable
    """
    owned = object_store is None
    store = object_store if object_store is not None else create_object_store(config)

    try:
        if not store.is_connected:
            try:
                await store.connect()
            except ObjectStoreConnectionError as e:
                raise ConnectionError(
                    f"Failed to connect to object store: {e}",
                    operation="open",
                    endpoint=config.s3.endpoint_url,
                ) from e

        yield await SnapshotStore.open(
            store,
            config.s3.bucket,
            config.snapshot.name,
            chunk_size=config.snapshot.chunk_size_bytes,
            verify_checksum=config.snapshot.verify_checksum,
        )
    finally:
        if owned:
            await store.close()
