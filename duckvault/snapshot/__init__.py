"""
Snapshot module for duckvault.

This module moves a DuckDB database file in and out of the object store:
- store: upload the local file as a named object
- retrieve: download the object to a local path
- info / delete: inspect or remove the object

Invariants:
    - One handle binds one connection, one bucket, one name
    - Retrieved files are byte-identical to the last successful store
    - Partial downloads are never left at the destination path
"""

from .session import open_snapshot_store
from .snapshot_store import (
    BUCKET_DESCRIPTION,
    SNAPSHOT_CONTENT_TYPE,
    SNAPSHOT_DESCRIPTION,
    SnapshotInfo,
    SnapshotStore,
    compute_checksum,
)

__all__ = [
    "SnapshotStore",
    "SnapshotInfo",
    "open_snapshot_store",
    "compute_checksum",
    "BUCKET_DESCRIPTION",
    "SNAPSHOT_CONTENT_TYPE",
    "SNAPSHOT_DESCRIPTION",
]
