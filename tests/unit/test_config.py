"""
Unit tests for environment-based configuration.

Tests cover:
- Defaults
- Environment parsing
- Validation failures
"""

import logging

import pytest

from duckvault.config import (
    S3_MIN_PART_SIZE,
    ObjectStoreBackend,
    VaultConfig,
)

ENV_VARS = (
    "OBJECT_STORE_BACKEND",
    "S3_BUCKET",
    "S3_REGION",
    "AWS_REGION",
    "S3_ENDPOINT",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "S3_PART_SIZE_BYTES",
    "S3_CONNECT_TIMEOUT_SECONDS",
    "S3_READ_TIMEOUT_SECONDS",
    "S3_MAX_ATTEMPTS",
    "SNAPSHOT_NAME",
    "SNAPSHOT_CHUNK_SIZE_BYTES",
    "SNAPSHOT_VERIFY_CHECKSUM",
    "DATA_DIR",
    "VERIFY_TABLE",
    "VERIFY_EXPECTED_ROWS",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


class TestVaultConfig:
    """Tests for VaultConfig.from_env."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        """Start every test from an empty configuration environment."""
        for name in ENV_VARS:
            monkeypatch.delenv(name, raising=False)

    def test_defaults(self):
        """Defaults work for local development."""
        config = VaultConfig.from_env()

        assert config.object_store.backend == ObjectStoreBackend.S3
        assert config.s3.bucket == "duckdb"
        assert config.s3.region == "us-east-1"
        assert config.s3.endpoint_url is None
        assert config.s3.part_size_bytes >= S3_MIN_PART_SIZE
        assert config.snapshot.name == "mydb.db"
        assert config.snapshot.chunk_size_bytes == 1024 * 1024
        assert config.snapshot.verify_checksum is True
        assert config.storage.data_dir == "./tmp"
        assert config.verifier.table == "users"
        assert config.verifier.expected_rows is None
        assert config.observability.log_format == "text"

    def test_environment_values(self, monkeypatch):
        """Environment variables override defaults."""
        monkeypatch.setenv("OBJECT_STORE_BACKEND", "MEMORY")
        monkeypatch.setenv("S3_BUCKET", "backups")
        monkeypatch.setenv("AWS_REGION", "eu-central-1")
        monkeypatch.setenv("S3_ENDPOINT", "http://localhost:9000")
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "minioadmin")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "minioadmin")
        monkeypatch.setenv("S3_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("SNAPSHOT_NAME", "analytics.db")
        monkeypatch.setenv("SNAPSHOT_CHUNK_SIZE_BYTES", "4096")
        monkeypatch.setenv("SNAPSHOT_VERIFY_CHECKSUM", "false")
        monkeypatch.setenv("DATA_DIR", "/var/lib/duckvault")
        monkeypatch.setenv("VERIFY_TABLE", "events")
        monkeypatch.setenv("VERIFY_EXPECTED_ROWS", "42")
        monkeypatch.setenv("LOG_FORMAT", "json")

        config = VaultConfig.from_env()

        assert config.object_store.backend == ObjectStoreBackend.MEMORY
        assert config.s3.bucket == "backups"
        assert config.s3.region == "eu-central-1"
        assert config.s3.endpoint_url == "http://localhost:9000"
        assert config.s3.access_key_id == "minioadmin"
        assert config.s3.max_attempts == 5
        assert config.snapshot.name == "analytics.db"
        assert config.snapshot.chunk_size_bytes == 4096
        assert config.snapshot.verify_checksum is False
        assert config.storage.data_dir == "/var/lib/duckvault"
        assert config.verifier.table == "events"
        assert config.verifier.expected_rows == 42
        assert config.observability.log_format == "json"

    def test_s3_region_takes_precedence(self, monkeypatch):
        monkeypatch.setenv("AWS_REGION", "eu-central-1")
        monkeypatch.setenv("S3_REGION", "us-west-2")

        assert VaultConfig.from_env().s3.region == "us-west-2"

    def test_invalid_backend(self, monkeypatch):
        monkeypatch.setenv("OBJECT_STORE_BACKEND", "nats")

        with pytest.raises(ValueError, match="OBJECT_STORE_BACKEND"):
            VaultConfig.from_env()

    def test_part_size_below_minimum(self, monkeypatch):
        """S3 rejects parts below 5 MiB."""
        monkeypatch.setenv("S3_PART_SIZE_BYTES", str(S3_MIN_PART_SIZE - 1))

        with pytest.raises(ValueError, match="S3_PART_SIZE_BYTES"):
            VaultConfig.from_env()

    def test_part_size_ignored_for_memory_backend(self, monkeypatch):
        monkeypatch.setenv("OBJECT_STORE_BACKEND", "memory")
        monkeypatch.setenv("S3_PART_SIZE_BYTES", "1024")

        assert VaultConfig.from_env().s3.part_size_bytes == 1024

    def test_unpaired_credentials(self, monkeypatch):
        """Access key without a secret is rejected."""
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "minioadmin")

        with pytest.raises(ValueError, match="must be set together"):
            VaultConfig.from_env()

    def test_empty_snapshot_name(self, monkeypatch):
        monkeypatch.setenv("SNAPSHOT_NAME", "")

        with pytest.raises(ValueError, match="SNAPSHOT_NAME"):
            VaultConfig.from_env()

    def test_empty_verify_table(self, monkeypatch):
        monkeypatch.setenv("VERIFY_TABLE", "")

        with pytest.raises(ValueError, match="VERIFY_TABLE"):
            VaultConfig.from_env()

    def test_non_positive_chunk_size(self, monkeypatch):
        monkeypatch.setenv("SNAPSHOT_CHUNK_SIZE_BYTES", "0")

        with pytest.raises(ValueError, match="SNAPSHOT_CHUNK_SIZE_BYTES"):
            VaultConfig.from_env()

    def test_negative_expected_rows(self, monkeypatch):
        monkeypatch.setenv("VERIFY_EXPECTED_ROWS", "-1")

        with pytest.raises(ValueError, match="VERIFY_EXPECTED_ROWS"):
            VaultConfig.from_env()

    def test_invalid_log_format(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")

        with pytest.raises(ValueError, match="LOG_FORMAT"):
            VaultConfig.from_env()

    def test_log_config_redacts_secrets(self, monkeypatch, caplog):
        """Logged configuration never contains credentials."""
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIAEXAMPLE")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "supersecret")
        config = VaultConfig.from_env()

        with caplog.at_level(logging.INFO, logger="duckvault.config"):
            config.log_config()

        record = caplog.records[-1]
        assert record.s3_credentials == "explicit"
        assert "supersecret" not in str(record.__dict__)
        assert "AKIAEXAMPLE" not in str(record.__dict__)
