"""
Configuration management for duckvault.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Secrets are never logged or exposed in error messages
    - S3 multipart part size is never below the S3 minimum (5 MiB)

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep environment variable names stable; they are part of the CLI contract
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

# S3 rejects multipart parts (other than the last) smaller than this
S3_MIN_PART_SIZE = 5 * 1024 * 1024


class ObjectStoreBackend(Enum):
    """Supported object store backends."""

    S3 = "s3"
    MEMORY = "memory"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class S3Config:
    """S3 configuration for snapshot objects.

    Attributes:
        bucket: S3 bucket name
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO)
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
        part_size_bytes: Multipart upload part size
        connect_timeout_seconds: Connection timeout for S3 requests
        read_timeout_seconds: Read timeout for S3 requests
        max_attempts: botocore retry attempts per request
    """

    bucket: str = "duckdb"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    part_size_bytes: int = 8 * 1024 * 1024  # 8MB
    connect_timeout_seconds: float = 10.0
    read_timeout_seconds: float = 60.0
    max_attempts: int = 3

    @classmethod
    def from_env(cls) -> S3Config:
        """Load configuration from environment variables."""
        return cls(
            bucket=os.getenv("S3_BUCKET", "duckdb"),
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            part_size_bytes=int(os.getenv("S3_PART_SIZE_BYTES", str(8 * 1024 * 1024))),
            connect_timeout_seconds=float(os.getenv("S3_CONNECT_TIMEOUT_SECONDS", "10")),
            read_timeout_seconds=float(os.getenv("S3_READ_TIMEOUT_SECONDS", "60")),
            max_attempts=int(os.getenv("S3_MAX_ATTEMPTS", "3")),
        )


@dataclass(frozen=True)
class ObjectStoreConfig:
    """Object store backend selection.

    Attributes:
        backend: Which object store backend to use
    """

    backend: ObjectStoreBackend = ObjectStoreBackend.S3

    @classmethod
    def from_env(cls) -> ObjectStoreConfig:
        """Load configuration from environment variables."""
        backend_str = os.getenv("OBJECT_STORE_BACKEND", "s3").lower()
        try:
            backend = ObjectStoreBackend(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid OBJECT_STORE_BACKEND '{backend_str}'. Must be one of: s3, memory"
            )
        return cls(backend=backend)


@dataclass(frozen=True)
class SnapshotConfig:
    """Snapshot store configuration.

    Attributes:
        name: Logical database name, used verbatim as the object key
        chunk_size_bytes: Read/write chunk size for streamed transfers
        verify_checksum: Check the stored SHA-256 header on retrieve
    """

    name: str = "mydb.db"
    chunk_size_bytes: int = 1024 * 1024  # 1MB
    verify_checksum: bool = True

    @classmethod
    def from_env(cls) -> SnapshotConfig:
        """Load configuration from environment variables."""
        return cls(
            name=os.getenv("SNAPSHOT_NAME", "mydb.db"),
            chunk_size_bytes=int(os.getenv("SNAPSHOT_CHUNK_SIZE_BYTES", str(1024 * 1024))),
            verify_checksum=_env_bool("SNAPSHOT_VERIFY_CHECKSUM", "true"),
        )


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory for local database files
    """

    data_dir: str = "./tmp"

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(data_dir=os.getenv("DATA_DIR", "./tmp"))


@dataclass(frozen=True)
class VerifierConfig:
    """Verifier configuration.

    Attributes:
        table: Relation counted by the verification query
        expected_rows: Expected row count (None = report only)
    """

    table: str = "users"
    expected_rows: int | None = None

    @classmethod
    def from_env(cls) -> VerifierConfig:
        """Load configuration from environment variables."""
        expected = os.getenv("VERIFY_EXPECTED_ROWS")
        return cls(
            table=os.getenv("VERIFY_TABLE", "users"),
            expected_rows=int(expected) if expected else None,
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class VaultConfig:
    """Complete duckvault configuration.

    This aggregates all configuration sections and provides validation.

    Attributes:
        object_store: Backend selection
        s3: S3 configuration (if backend is S3)
        snapshot: Snapshot store configuration
        storage: Local storage configuration
        verifier: Verifier configuration
        observability: Logging configuration
    """

    object_store: ObjectStoreConfig = field(default_factory=ObjectStoreConfig)
    s3: S3Config = field(default_factory=S3Config)
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    verifier: VerifierConfig = field(default_factory=VerifierConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> VaultConfig:
        """Load complete configuration from environment variables.

        Returns:
            VaultConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        config = cls(
            object_store=ObjectStoreConfig.from_env(),
            s3=S3Config.from_env(),
            snapshot=SnapshotConfig.from_env(),
            storage=StorageConfig.from_env(),
            verifier=VerifierConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.s3.bucket:
            raise ValueError("S3_BUCKET must not be empty")
        if not self.snapshot.name:
            raise ValueError("SNAPSHOT_NAME must not be empty")
        if not self.verifier.table:
            raise ValueError("VERIFY_TABLE must not be empty")
        if self.snapshot.chunk_size_bytes <= 0:
            raise ValueError("SNAPSHOT_CHUNK_SIZE_BYTES must be positive")

        if self.object_store.backend == ObjectStoreBackend.S3:
            if self.s3.part_size_bytes < S3_MIN_PART_SIZE:
                raise ValueError(
                    f"S3_PART_SIZE_BYTES must be at least {S3_MIN_PART_SIZE} bytes"
                )
            if bool(self.s3.access_key_id) != bool(self.s3.secret_access_key):
                raise ValueError(
                    "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must be set together"
                )

        if self.verifier.expected_rows is not None and self.verifier.expected_rows < 0:
            raise ValueError("VERIFY_EXPECTED_ROWS must not be negative")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "duckvault configuration loaded",
            extra={
                "object_store_backend": self.object_store.backend.value,
                "s3_bucket": self.s3.bucket,
                "s3_endpoint": self.s3.endpoint_url or "AWS",
                "s3_region": self.s3.region,
                "s3_credentials": "explicit" if self.s3.access_key_id else "default-chain",
                "snapshot_name": self.snapshot.name,
                "data_dir": self.storage.data_dir,
                "log_level": self.observability.log_level,
            },
        )
