"""
duckvault - durable object-store snapshots for embedded DuckDB files.

This package moves a single DuckDB database file in and out of an object
store so the database survives process restarts, can be shared across
machines and is recovered exactly as written.

Architecture:
    ┌─────────────┐     ┌───────────────┐     ┌──────────────────┐
    │  DuckDB     │────▶│ SnapshotStore │────▶│   ObjectStore    │
    │  file       │     │ store/retrieve│     │ (S3 / in-memory) │
    └─────────────┘     └───────┬───────┘     └──────────────────┘
                                │
                                ▼
                        ┌───────────────┐
                        │   Verifier    │
                        │ (DuckDB open) │
                        └───────────────┘

Invariants:
    - One SnapshotStore handle binds one connection, one bucket, one name
    - Exactly one live snapshot object exists per (bucket, name)
    - store() is last-writer-wins; there is no versioning or locking
    - Every failure is raised as a VaultError naming the failing operation

How to change safely:
    - Keep the metadata headers backward compatible (add, don't rename)
    - New object store backends must implement the ObjectStore protocol
    - Test round trips against MinIO before changing the S3 backend
"""

from ._version import __version__

__all__ = ["__version__"]
