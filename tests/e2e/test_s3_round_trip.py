"""
E2E tests for the snapshot round trip against a real S3-compatible endpoint.

Covers bucket create-or-open, single-part and multipart uploads, metadata
headers, not-found handling and the demo tool.
"""

import dataclasses
import os

import pytest

from duckvault.errors import NotFoundError
from duckvault.objectstore.base import BucketStatus
from duckvault.snapshot import SNAPSHOT_CONTENT_TYPE, SNAPSHOT_DESCRIPTION, open_snapshot_store
from duckvault.tools import DemoTool, create_sample_database
from duckvault.verify import Verifier

pytestmark = pytest.mark.skipif(
    os.environ.get("DUCKVAULT_E2E_TESTS", "0") != "1",
    reason="E2E tests disabled. Set DUCKVAULT_E2E_TESTS=1 to enable."
)


class TestS3RoundTrip:
    """Round trip against S3/MinIO."""

    @pytest.mark.asyncio
    async def test_store_retrieve_verify(self, e2e_config, data_dir):
        db_path = data_dir / "mydb.db"
        retrieved_path = data_dir / "mydb_retrieved.db"
        create_sample_database(db_path)

        async with open_snapshot_store(e2e_config) as store:
            assert store.bucket_status == BucketStatus.CREATED

            await store.store(db_path)
            info = await store.info()
            assert info.size_bytes == db_path.stat().st_size
            assert info.description == SNAPSHOT_DESCRIPTION
            assert info.content_type == SNAPSHOT_CONTENT_TYPE
            assert info.checksum is not None
            assert info.stored_at is not None

            await store.retrieve(retrieved_path)
            assert Verifier(expected_rows=3).verify(retrieved_path).row_count == 3

            await store.delete()
            with pytest.raises(NotFoundError):
                await store.retrieve(data_dir / "gone.db")
            assert not (data_dir / "gone.db").exists()

    @pytest.mark.asyncio
    async def test_reopen_existing_bucket(self, e2e_config):
        async with open_snapshot_store(e2e_config):
            pass

        async with open_snapshot_store(e2e_config) as store:
            assert store.bucket_status == BucketStatus.EXISTED

    @pytest.mark.asyncio
    async def test_multipart_upload(self, e2e_config, data_dir):
        """File larger than one part goes through a multipart upload."""
        part_size = e2e_config.s3.part_size_bytes
        source = data_dir / "large.db"
        source.write_bytes(os.urandom(part_size * 2 + 1024))
        output = data_dir / "large_out.db"

        config = dataclasses.replace(
            e2e_config, snapshot=dataclasses.replace(e2e_config.snapshot, name="large.db")
        )
        async with open_snapshot_store(config) as store:
            await store.store(source)
            await store.retrieve(output)
            await store.delete()

        assert output.read_bytes() == source.read_bytes()

    @pytest.mark.asyncio
    async def test_demo(self, e2e_config, data_dir):
        result = await DemoTool(e2e_config, data_dir=str(data_dir)).run()

        assert result.success, result.error
        assert result.row_count == 3
        assert result.deleted
