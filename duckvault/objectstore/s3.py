"""
S3 object store implementation.

This module provides an S3 (and S3-compatible, e.g. MinIO) backend for the
ObjectStore protocol using aiobotocore for async operations.

Uploads are streamed: payloads smaller than one part go through a single
PutObject, larger ones through a multipart upload with bounded part
buffers. A multipart upload that fails is aborted, so the previous object
under the key stays visible.

Invariants:
    - At most one part (part_size bytes) is buffered in memory per upload
    - Failed multipart uploads are aborted before the error propagates
    - User metadata keys are lowercase (S3 lowercases them anyway)
    - Missing keys are reported as ObjectNotFoundError, never as a
      generic error

How to change safely:
    - Test with MinIO before deploying to AWS
    - Keep part_size >= 5 MiB for real S3 (enforced by VaultConfig)
    - Keep error code classification in _classify_client_error
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from aiobotocore.config import AioConfig
from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError
from botocore.exceptions import ConnectionError as BotoConnectionError

from .base import (
    BucketStatus,
    BucketUnavailableError,
    ObjectInfo,
    ObjectMeta,
    ObjectNotFoundError,
    ObjectStoreConnectionError,
    ObjectStoreError,
)

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
_DESCRIPTION_KEY = "description"


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _classify_client_error(operation: str, error: ClientError) -> ObjectStoreError:
    code = _error_code(error)
    if code in _NOT_FOUND_CODES:
        return ObjectNotFoundError(f"S3 {operation}: object not found")
    return ObjectStoreError(f"S3 {operation} failed ({code or 'unknown'}): {error}")


class S3ObjectReader:
    """Streamed reader over an S3 GetObject response body."""

    def __init__(self, body: Any, info: ObjectInfo) -> None:
        self.info = info
        self._body = body

    async def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        while True:
            try:
                chunk = await self._body.read(chunk_size)
            except Exception as e:
                raise ObjectStoreError(f"S3 stream read failed: {e}") from e
            if not chunk:
                break
            yield chunk

    async def __aenter__(self) -> S3ObjectReader:
        await self._body.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._body.__aexit__(exc_type, exc, tb)


class S3ObjectStore:
    """S3 implementation of ObjectStore protocol.

    Uses aiobotocore for async operations with S3 or MinIO.

    Attributes:
        config: S3 configuration
        part_size: Multipart upload part size in bytes

    Example:
        >>> config = S3Config(bucket="duckdb", endpoint_url="http://localhost:9000")
        >>> store = S3ObjectStore(config)
        >>> await store.connect()
        >>> status = await store.ensure_bucket("duckdb", "DuckDB database storage")
    """

    def __init__(
        self,
        config: Any,
        client: Any = None,
        part_size: int | None = None,
    ) -> None:
        """Initialize S3 object store.

        Args:
            config: S3Config instance
            client: Pre-built S3 client (tests); created on connect() if None
            part_size: Override for config.part_size_bytes
        """
        self.config = config
        self.part_size = part_size or config.part_size_bytes
        self._session = None
        self._client_ctx = None
        self._client = client
        self._owns_client = client is None
        self._connected = client is not None

    @property
    def is_connected(self) -> bool:
        """Whether connected to S3."""
        return self._connected

    async def connect(self) -> None:
        """Create the S3 client.

        No request is sent here; reachability is established by the first
        call (normally ensure_bucket()).

        Raises:
            ObjectStoreConnectionError: If the client cannot be created
        """
        if self._connected:
            return

        try:
            self._session = get_session()

            client_kwargs: dict[str, Any] = {
                "region_name": self.config.region,
                "config": AioConfig(
                    connect_timeout=self.config.connect_timeout_seconds,
                    read_timeout=self.config.read_timeout_seconds,
                    retries={"max_attempts": self.config.max_attempts, "mode": "standard"},
                ),
            }

            if self.config.endpoint_url:
                client_kwargs["endpoint_url"] = self.config.endpoint_url

            if self.config.access_key_id:
                client_kwargs["aws_access_key_id"] = self.config.access_key_id
                client_kwargs["aws_secret_access_key"] = self.config.secret_access_key

            self._client_ctx = self._session.create_client("s3", **client_kwargs)
            self._client = await self._client_ctx.__aenter__()
            self._owns_client = True
            self._connected = True
            logger.info(
                "Connected to S3",
                extra={
                    "region": self.config.region,
                    "endpoint": self.config.endpoint_url or "AWS",
                },
            )

        except (BotoCoreError, ValueError) as e:
            raise ObjectStoreConnectionError(f"Failed to create S3 client: {e}") from e

    async def close(self) -> None:
        """Close S3 client."""
        if self._client and self._owns_client and self._client_ctx:
            try:
                await self._client_ctx.__aexit__(None, None, None)
            except Exception as e:
                logger.warning(f"Error closing S3 client: {e}")

        self._client = None
        self._client_ctx = None
        self._session = None
        self._connected = False
        logger.info("S3 connection closed")

    def _require_connection(self) -> None:
        if not self._client:
            raise ObjectStoreConnectionError("Not connected to S3")

    async def _call(self, operation: str, method: str, **kwargs: Any) -> dict[str, Any]:
        """Invoke one S3 API call, translating botocore errors."""
        self._require_connection()
        try:
            return await getattr(self._client, method)(**kwargs)
        except BotoConnectionError as e:
            raise ObjectStoreConnectionError(
                f"Failed to reach S3 endpoint during {operation}: {e}"
            ) from e
        except ClientError as e:
            raise _classify_client_error(operation, e) from e
        except BotoCoreError as e:
            raise ObjectStoreError(f"S3 {operation} failed: {e}") from e
        except (OSError, asyncio.TimeoutError) as e:
            raise ObjectStoreConnectionError(f"S3 {operation} transport failure: {e}") from e

    async def ensure_bucket(self, bucket: str, description: str = "") -> BucketStatus:
        """Open the bucket if it exists, otherwise create it.

        A HeadBucket goes first: in us-east-1 CreateBucket on a bucket we
        already own succeeds, which would report CREATED and re-tag it. Any
        creation failure other than a connection failure is followed by a
        second HeadBucket; if that succeeds the bucket is usable.
        """
        self._require_connection()

        try:
            await self._call("head_bucket", "head_bucket", Bucket=bucket)
            logger.debug(f"S3 bucket {bucket} exists")
            return BucketStatus.EXISTED
        except ObjectStoreConnectionError:
            raise
        except ObjectStoreError as e:
            logger.debug(f"HeadBucket {bucket} failed ({e}), creating bucket")

        create_kwargs: dict[str, Any] = {"Bucket": bucket}
        if self.config.region and self.config.region != "us-east-1":
            create_kwargs["CreateBucketConfiguration"] = {
                "LocationConstraint": self.config.region
            }

        try:
            await self._client.create_bucket(**create_kwargs)
        except BotoConnectionError as e:
            raise ObjectStoreConnectionError(f"Failed to reach S3 endpoint: {e}") from e
        except ClientError as e:
            code = _error_code(e)
            if code == "BucketAlreadyOwnedByYou":
                return BucketStatus.EXISTED

            logger.debug(f"CreateBucket {bucket} failed ({code}), opening existing bucket")
            try:
                await self._call("head_bucket", "head_bucket", Bucket=bucket)
            except ObjectStoreConnectionError:
                raise
            except ObjectStoreError as head_error:
                raise BucketUnavailableError(
                    f"Bucket '{bucket}' could not be created ({code}) or opened: {head_error}"
                ) from e
            return BucketStatus.EXISTED
        except BotoCoreError as e:
            raise ObjectStoreError(f"S3 create_bucket failed: {e}") from e
        except (OSError, asyncio.TimeoutError) as e:
            raise ObjectStoreConnectionError(f"S3 create_bucket transport failure: {e}") from e

        if description:
            await self._tag_bucket(bucket, description)

        logger.info("Created S3 bucket", extra={"bucket": bucket})
        return BucketStatus.CREATED

    async def _tag_bucket(self, bucket: str, description: str) -> None:
        # Not every S3-compatible store supports bucket tagging
        try:
            await self._call(
                "put_bucket_tagging",
                "put_bucket_tagging",
                Bucket=bucket,
                Tagging={"TagSet": [{"Key": "Description", "Value": description}]},
            )
        except ObjectStoreConnectionError:
            raise
        except ObjectStoreError as e:
            logger.warning(f"Could not tag bucket {bucket} with description: {e}")

    @staticmethod
    def _metadata(meta: ObjectMeta) -> dict[str, str]:
        metadata = {k.lower(): v for k, v in meta.headers.items()}
        if meta.description:
            metadata[_DESCRIPTION_KEY] = meta.description
        return metadata

    @staticmethod
    def _info_from_response(bucket: str, key: str, response: dict[str, Any]) -> ObjectInfo:
        metadata = {k.lower(): v for k, v in response.get("Metadata", {}).items()}
        description = metadata.pop(_DESCRIPTION_KEY, "")
        return ObjectInfo(
            bucket=bucket,
            name=key,
            size=int(response.get("ContentLength", 0)),
            modified_at=response["LastModified"],
            description=description,
            content_type=response.get("ContentType", ""),
            headers=metadata,
            etag=response.get("ETag"),
        )

    async def put(
        self,
        bucket: str,
        key: str,
        meta: ObjectMeta,
        chunks: AsyncIterator[bytes],
    ) -> ObjectInfo:
        """Stream chunks to S3, replacing any previous object.

        Uses a single PutObject when the whole payload fits in one part,
        otherwise a multipart upload.
        """
        self._require_connection()

        object_kwargs = {
            "Bucket": bucket,
            "Key": key,
            "ContentType": meta.content_type,
            "Metadata": self._metadata(meta),
        }
        buffer = bytearray()
        upload_id: str | None = None
        parts: list[dict[str, Any]] = []

        try:
            async for chunk in chunks:
                buffer.extend(chunk)
                while len(buffer) >= self.part_size:
                    if upload_id is None:
                        response = await self._call(
                            "create_multipart_upload",
                            "create_multipart_upload",
                            **object_kwargs,
                        )
                        upload_id = response["UploadId"]
                    part = bytes(buffer[: self.part_size])
                    del buffer[: self.part_size]
                    parts.append(await self._upload_part(bucket, key, upload_id, len(parts) + 1, part))

            if upload_id is None:
                await self._call("put_object", "put_object", Body=bytes(buffer), **object_kwargs)
            else:
                if buffer:
                    parts.append(
                        await self._upload_part(bucket, key, upload_id, len(parts) + 1, bytes(buffer))
                    )
                await self._call(
                    "complete_multipart_upload",
                    "complete_multipart_upload",
                    Bucket=bucket,
                    Key=key,
                    UploadId=upload_id,
                    MultipartUpload={"Parts": parts},
                )

        except Exception:
            if upload_id is not None:
                await self._abort_upload(bucket, key, upload_id)
            raise

        logger.debug(
            "Uploaded S3 object",
            extra={"bucket": bucket, "key": key, "parts": len(parts) or 1},
        )
        return await self.get_info(bucket, key)

    async def _upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> dict[str, Any]:
        response = await self._call(
            "upload_part",
            "upload_part",
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
        )
        return {"ETag": response["ETag"], "PartNumber": part_number}

    async def _abort_upload(self, bucket: str, key: str, upload_id: str) -> None:
        try:
            await self._call(
                "abort_multipart_upload",
                "abort_multipart_upload",
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
            )
            logger.info(
                "Aborted multipart upload",
                extra={"bucket": bucket, "key": key, "upload_id": upload_id},
            )
        except ObjectStoreError as e:
            logger.warning(f"Failed to abort multipart upload {upload_id} for {key}: {e}")

    async def get(self, bucket: str, key: str) -> S3ObjectReader:
        """Open an object for streamed reading."""
        response = await self._call("get_object", "get_object", Bucket=bucket, Key=key)
        info = self._info_from_response(bucket, key, response)
        return S3ObjectReader(response["Body"], info)

    async def get_info(self, bucket: str, key: str) -> ObjectInfo:
        """Get object metadata with HeadObject."""
        response = await self._call("head_object", "head_object", Bucket=bucket, Key=key)
        return self._info_from_response(bucket, key, response)

    async def delete(self, bucket: str, key: str) -> None:
        """Delete an object.

        S3 DeleteObject succeeds for missing keys, so existence is checked
        first to report ObjectNotFoundError.
        """
        await self.get_info(bucket, key)
        await self._call("delete_object", "delete_object", Bucket=bucket, Key=key)
