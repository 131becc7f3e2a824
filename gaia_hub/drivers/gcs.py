"""Google Cloud Storage Driver.

Writes through a resumable blob writer stream and lists with paged
``list_blobs`` calls. The content type is set on the blob.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any
from typing import Protocol

from ..config import DriverConfig
from ..config import GcCredentials
from .base import BucketBinding
from .base import StorageDriver
from .base import WriteRequest
from .listing import ListingPage
from .listing import page_from_gcs


class GcsClient(Protocol):
    """The Cloud Storage operations the driver needs."""

    async def ensure_bucket(self, bucket: str) -> None: ...

    async def write_stream(
        self,
        bucket: str,
        name: str,
        chunks: AsyncIterator[bytes],
        content_type: str,
        cache_control: str | None = None,
    ) -> None: ...

    async def get_files(
        self,
        bucket: str,
        prefix: str,
        page_token: str | None,
        page_size: int,
    ) -> tuple[list[Any], str | None]: ...


class CloudStorageClient:
    """GcsClient backed by ``google.cloud.storage``; blocking calls run in a worker thread."""

    def __init__(self, credentials: GcCredentials | None = None, client: Any = None):
        credentials = credentials or GcCredentials()
        if client is None:
            # Lazy import to avoid the dependency when another backend is used
            from google.cloud import storage

            if credentials.key_filename:
                client = storage.Client.from_service_account_json(
                    credentials.key_filename, project=credentials.project_id
                )
            else:
                client = storage.Client(project=credentials.project_id)
        self._client = client
        self._binding = BucketBinding()

    def _bucket(self, name: str):
        self._binding.check(name)
        return self._client.bucket(name)

    async def ensure_bucket(self, bucket: str) -> None:
        gcs_bucket = self._bucket(bucket)
        if not await asyncio.to_thread(gcs_bucket.exists):
            await asyncio.to_thread(self._client.create_bucket, bucket)

    async def write_stream(
        self,
        bucket: str,
        name: str,
        chunks: AsyncIterator[bytes],
        content_type: str,
        cache_control: str | None = None,
    ) -> None:
        blob = self._bucket(bucket).blob(name)
        if cache_control:
            blob.cache_control = cache_control
        writer = await asyncio.to_thread(blob.open, "wb", content_type=content_type)
        # Closing the writer commits the upload, so only close on success
        async for chunk in chunks:
            await asyncio.to_thread(writer.write, chunk)
        await asyncio.to_thread(writer.close)

    async def get_files(
        self,
        bucket: str,
        prefix: str,
        page_token: str | None,
        page_size: int,
    ) -> tuple[list[Any], str | None]:
        self._binding.check(bucket)

        def fetch_page():
            iterator = self._client.list_blobs(bucket, prefix=prefix, page_size=page_size, page_token=page_token)
            page = next(iterator.pages, None)
            blobs = list(page) if page is not None else []
            return blobs, iterator.next_page_token

        return await asyncio.to_thread(fetch_page)


class GcsDriver(StorageDriver):
    """Storage driver for Google Cloud Storage.

    Args:
        config: Driver configuration; ``gc_credentials`` feed the default client
        client: Optional GcsClient; defaults to the google-cloud-storage client
    """

    def __init__(self, config: DriverConfig | dict[str, Any], client: GcsClient | None = None):
        super().__init__(config)
        self._client = client if client is not None else CloudStorageClient(self.config.gc_credentials)

    @property
    def backend_type(self) -> str:
        return "google-cloud"

    def get_read_url_prefix(self) -> str:
        if self.config.read_url_prefix:
            return self.config.read_url_prefix.rstrip("/") + "/"
        return f"https://storage.googleapis.com/{self.bucket}/"

    async def _create_bucket_if_absent(self) -> None:
        await self._client.ensure_bucket(self.bucket)

    async def _write_object(self, request: WriteRequest, chunks: AsyncIterator[bytes]) -> None:
        await self._client.write_stream(
            self.bucket,
            self.object_key(request.storage_top_level, request.path),
            chunks,
            request.content_type,
            self.config.cache_control,
        )

    async def _list_page(self, storage_top_level: str, continuation_token: str | None) -> ListingPage:
        prefix = self.namespace_prefix(storage_top_level)
        blobs, next_page_token = await self._client.get_files(self.bucket, prefix, continuation_token, self.page_size)
        return page_from_gcs(blobs, next_page_token, prefix)
