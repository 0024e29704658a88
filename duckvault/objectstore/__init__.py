"""
Object store abstraction for duckvault.

This module provides a pluggable object store interface supporting:
- S3 and S3-compatible stores such as MinIO (production)
- In-memory (for testing and the local demo)

Invariants:
    - put() returns only after the backend acknowledged the full payload
    - Failed uploads never leave a partial object visible on these backends
    - ensure_bucket() is idempotent: create, or open if it already exists

How to change safely:
    - New backends must implement the ObjectStore protocol
    - Reuse the base error types so callers can classify failures
"""

from .base import (
    BucketStatus,
    BucketUnavailableError,
    ObjectInfo,
    ObjectMeta,
    ObjectNotFoundError,
    ObjectReader,
    ObjectStore,
    ObjectStoreConnectionError,
    ObjectStoreError,
    create_object_store,
)
from .memory import InMemoryObjectStore
from .s3 import S3ObjectStore

__all__ = [
    # Protocol and types
    "ObjectStore",
    "ObjectReader",
    "ObjectMeta",
    "ObjectInfo",
    "BucketStatus",
    "ObjectStoreError",
    "ObjectStoreConnectionError",
    "ObjectNotFoundError",
    "BucketUnavailableError",
    # Factory
    "create_object_store",
    # Implementations
    "S3ObjectStore",
    "InMemoryObjectStore",
]
