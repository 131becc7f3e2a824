"""Amazon S3 Storage Driver.

Writes objects with a managed multipart upload and lists them with
``list_objects_v2`` continuation tokens. The content type is stored as the
object's ``ContentType``.
"""

from __future__ import annotations

import asyncio
import tempfile
from collections.abc import AsyncIterator
from typing import Any
from typing import Protocol

from ..config import AwsCredentials
from ..config import DriverConfig
from .base import BucketBinding
from .base import StorageDriver
from .base import WriteRequest
from .listing import ListingPage
from .listing import page_from_s3

# Uploads stay in memory up to this size before spilling to a temp file
SPOOL_MAX_SIZE = 8 * 1024 * 1024


class S3Client(Protocol):
    """The S3 operations the driver needs."""

    async def ensure_bucket(self, bucket: str) -> None: ...

    async def upload(
        self,
        bucket: str,
        key: str,
        body: AsyncIterator[bytes],
        content_type: str,
        cache_control: str | None = None,
    ) -> None: ...

    async def list_objects_page(
        self,
        bucket: str,
        prefix: str,
        continuation_token: str | None,
        max_keys: int,
    ) -> dict[str, Any]: ...


class Boto3S3Client:
    """S3Client backed by a boto3 client; blocking calls run in a worker thread."""

    def __init__(self, credentials: AwsCredentials | None = None, client: Any = None):
        credentials = credentials or AwsCredentials()
        if client is None:
            import boto3

            client = boto3.client(
                "s3",
                region_name=credentials.region,
                endpoint_url=credentials.endpoint_url,
                aws_access_key_id=credentials.access_key_id,
                aws_secret_access_key=credentials.secret_access_key,
                aws_session_token=credentials.session_token,
            )
        self._client = client
        self._region = credentials.region
        self._binding = BucketBinding()

    async def ensure_bucket(self, bucket: str) -> None:
        from botocore.exceptions import ClientError

        self._binding.check(bucket)
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=bucket)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") not in ("404", "NoSuchBucket", "NotFound"):
                raise
            params: dict[str, Any] = {"Bucket": bucket}
            if self._region and self._region != "us-east-1":
                params["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
            await asyncio.to_thread(self._client.create_bucket, **params)

    async def upload(
        self,
        bucket: str,
        key: str,
        body: AsyncIterator[bytes],
        content_type: str,
        cache_control: str | None = None,
    ) -> None:
        self._binding.check(bucket)
        extra_args = {"ContentType": content_type}
        if cache_control:
            extra_args["CacheControl"] = cache_control
        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as spool:
            async for chunk in body:
                await asyncio.to_thread(spool.write, chunk)
            spool.seek(0)
            await asyncio.to_thread(self._client.upload_fileobj, spool, bucket, key, ExtraArgs=extra_args)

    async def list_objects_page(
        self,
        bucket: str,
        prefix: str,
        continuation_token: str | None,
        max_keys: int,
    ) -> dict[str, Any]:
        self._binding.check(bucket)
        params: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix, "MaxKeys": max_keys}
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        return await asyncio.to_thread(self._client.list_objects_v2, **params)


class S3Driver(StorageDriver):
    """Storage driver for Amazon S3 and S3-compatible endpoints.

    Args:
        config: Driver configuration; ``aws_credentials`` feed the default client
        client: Optional S3Client; defaults to a boto3-backed one
    """

    def __init__(self, config: DriverConfig | dict[str, Any], client: S3Client | None = None):
        super().__init__(config)
        self._client = client if client is not None else Boto3S3Client(self.config.aws_credentials)

    @property
    def backend_type(self) -> str:
        return "aws"

    def get_read_url_prefix(self) -> str:
        if self.config.read_url_prefix:
            return self.config.read_url_prefix.rstrip("/") + "/"
        return f"https://{self.bucket}.s3.amazonaws.com/"

    async def _create_bucket_if_absent(self) -> None:
        await self._client.ensure_bucket(self.bucket)

    async def _write_object(self, request: WriteRequest, chunks: AsyncIterator[bytes]) -> None:
        await self._client.upload(
            self.bucket,
            self.object_key(request.storage_top_level, request.path),
            chunks,
            request.content_type,
            self.config.cache_control,
        )

    async def _list_page(self, storage_top_level: str, continuation_token: str | None) -> ListingPage:
        prefix = self.namespace_prefix(storage_top_level)
        response = await self._client.list_objects_page(self.bucket, prefix, continuation_token, self.page_size)
        return page_from_s3(response, prefix)
