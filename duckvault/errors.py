"""
Error types for duckvault.

This module defines every exception raised by the snapshot store and the
verifier:
- VaultError: Base exception
- ConnectionError: Backing object store is unreachable
- BucketError: Bucket exists but cannot be used
- SourceFileError: Local file to upload cannot be read
- DestinationError: Local file to download into cannot be written
- StoreTransportError: Upload or download failed in the object store
- NotFoundError: No snapshot object under the bound name
- EngineOpenError: File cannot be opened as a DuckDB database
- QueryError: Verification query failed
- VerificationMismatchError: Verification query returned an unexpected value

Invariants:
    - All errors inherit from VaultError
    - Every error records the operation that failed
    - The underlying cause is chained with ``raise ... from``
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class VaultError(Exception):
    """Base exception for all duckvault errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        operation: Operation that failed (open, store, retrieve, info, delete, verify, create)
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "VAULT_ERROR"
        self.operation = operation
        self.details = details or {}

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class ConnectionError(VaultError):
    """Cannot reach the backing object store.

    Raised when:
    - The object store client is not connected
    - The endpoint refuses or drops the connection
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            operation=operation,
            details={"endpoint": endpoint},
        )
        self.endpoint = endpoint


class BucketError(VaultError):
    """Bucket exists but is unusable (owned elsewhere, access denied)."""

    def __init__(self, message: str, bucket: str, operation: Optional[str] = "open") -> None:
        super().__init__(
            message,
            code="BUCKET_ERROR",
            operation=operation,
            details={"bucket": bucket},
        )
        self.bucket = bucket


class SourceFileError(VaultError):
    """Local source file cannot be opened or read."""

    def __init__(self, message: str, path: str, operation: Optional[str] = "store") -> None:
        super().__init__(
            message,
            code="SOURCE_FILE_ERROR",
            operation=operation,
            details={"path": path},
        )
        self.path = path


class DestinationError(VaultError):
    """Local destination file or directory cannot be created or written."""

    def __init__(self, message: str, path: str, operation: Optional[str] = "retrieve") -> None:
        super().__init__(
            message,
            code="DESTINATION_ERROR",
            operation=operation,
            details={"path": path},
        )
        self.path = path


class StoreTransportError(VaultError):
    """Transfer to or from the object store failed.

    A failure in the middle of a transfer leaves the remote object (for
    store) indeterminate on backends without atomic uploads. Callers must
    re-check with info() or repeat the operation.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="STORE_TRANSPORT_ERROR",
            operation=operation,
            details={"bucket": bucket, "key": key},
        )
        self.bucket = bucket
        self.key = key


class NotFoundError(VaultError):
    """No snapshot object exists under the bound name."""

    def __init__(self, message: str, operation: str, bucket: str, key: str) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            operation=operation,
            details={"bucket": bucket, "key": key},
        )
        self.bucket = bucket
        self.key = key


class EngineOpenError(VaultError):
    """File is not a valid DuckDB database (corrupted transfer, wrong format)."""

    def __init__(self, message: str, path: str) -> None:
        super().__init__(
            message,
            code="ENGINE_OPEN_ERROR",
            operation="verify",
            details={"path": path},
        )
        self.path = path


class QueryError(VaultError):
    """Verification query failed (relation absent or query error)."""

    def __init__(
        self,
        message: str,
        path: str,
        query: Optional[str] = None,
        code: str = "QUERY_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            operation="verify",
            details={"path": path, "query": query, **(details or {})},
        )
        self.path = path
        self.query = query


class VerificationMismatchError(QueryError):
    """Verification query succeeded but returned an unexpected value.

    Attributes:
        expected: Value the caller expected
        actual: Value the query returned
    """

    def __init__(self, path: str, query: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Expected {expected} rows, found {actual}",
            path=path,
            query=query,
            code="VERIFICATION_MISMATCH",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual
