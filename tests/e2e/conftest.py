"""
E2E test fixtures for duckvault.

These tests require a reachable S3-compatible endpoint, e.g. MinIO:

    docker run -p 9000:9000 minio/minio server /data
    DUCKVAULT_E2E_TESTS=1 S3_ENDPOINT=http://localhost:9000 \
        AWS_ACCESS_KEY_ID=minioadmin AWS_SECRET_ACCESS_KEY=minioadmin pytest tests/e2e
"""

import dataclasses
import os
import socket
import tempfile
import time
import uuid
from pathlib import Path
from typing import Generator
from urllib.parse import urlparse

import pytest

from duckvault.config import ObjectStoreBackend, ObjectStoreConfig, VaultConfig


def wait_for_service(host: str, port: int, timeout: int = 60) -> bool:
    """Wait for a service to become available."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1):
                return True
        except OSError:
            time.sleep(1)
    return False


@pytest.fixture(scope="session")
def s3_endpoint() -> str:
    """S3 endpoint URL, checked for reachability once per session."""
    endpoint = os.environ.get("S3_ENDPOINT", "http://localhost:9000")
    parsed = urlparse(endpoint)
    port = parsed.port or (443 if parsed.scheme == "https" else 80)
    assert wait_for_service(parsed.hostname, port, timeout=30), f"{endpoint} not reachable"
    return endpoint


@pytest.fixture
def test_bucket() -> str:
    """Generate unique bucket name for test isolation."""
    return f"duckvault-e2e-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def data_dir() -> Generator[Path, None, None]:
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def e2e_config(s3_endpoint, test_bucket, data_dir) -> VaultConfig:
    """S3 configuration pointing at the E2E endpoint and a fresh bucket."""
    config = VaultConfig.from_env()
    return dataclasses.replace(
        config,
        object_store=ObjectStoreConfig(backend=ObjectStoreBackend.S3),
        s3=dataclasses.replace(config.s3, endpoint_url=s3_endpoint, bucket=test_bucket),
        storage=dataclasses.replace(config.storage, data_dir=str(data_dir)),
    )
