"""Azure Blob Storage Driver.

Writes block blobs from a stream into a container and lists them with
segmented (``by_page``) listings. The content type is stored in the blob's
content settings.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any
from typing import Protocol

from ..config import AzureCredentials
from ..config import DriverConfig
from ..exceptions import ConfigurationError
from .base import BucketBinding
from .base import StorageDriver
from .base import WriteRequest
from .listing import ListingPage
from .listing import page_from_azure


class AzureBlobClient(Protocol):
    """The blob-service operations the driver needs."""

    async def create_container_if_not_exists(self, container: str) -> None: ...

    async def upload_block_blob(
        self,
        container: str,
        blob_name: str,
        stream: AsyncIterator[bytes],
        content_type: str,
        cache_control: str | None = None,
    ) -> None: ...

    async def list_blobs_segment(
        self,
        container: str,
        prefix: str,
        continuation_token: str | None,
        results_per_page: int,
    ) -> dict[str, Any]: ...


class AioBlobServiceClient:
    """AzureBlobClient backed by ``azure.storage.blob.aio.BlobServiceClient``."""

    def __init__(self, credentials: AzureCredentials, service: Any = None):
        if service is None:
            from azure.storage.blob.aio import BlobServiceClient

            service = BlobServiceClient(
                account_url=f"https://{credentials.account_name}.blob.core.windows.net",
                credential={"account_name": credentials.account_name, "account_key": credentials.account_key},
            )
        self._service = service
        self._binding = BucketBinding()

    async def create_container_if_not_exists(self, container: str) -> None:
        from azure.core.exceptions import ResourceExistsError

        self._binding.check(container)
        try:
            await self._service.get_container_client(container).create_container()
        except ResourceExistsError:
            pass

    async def upload_block_blob(
        self,
        container: str,
        blob_name: str,
        stream: AsyncIterator[bytes],
        content_type: str,
        cache_control: str | None = None,
    ) -> None:
        from azure.storage.blob import ContentSettings

        self._binding.check(container)
        blob_client = self._service.get_blob_client(container=container, blob=blob_name)
        await blob_client.upload_blob(
            stream,
            blob_type="BlockBlob",
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type, cache_control=cache_control),
        )

    async def list_blobs_segment(
        self,
        container: str,
        prefix: str,
        continuation_token: str | None,
        results_per_page: int,
    ) -> dict[str, Any]:
        self._binding.check(container)
        container_client = self._service.get_container_client(container)
        pages = container_client.list_blobs(name_starts_with=prefix, results_per_page=results_per_page).by_page(
            continuation_token=continuation_token
        )
        entries = []
        try:
            page = await pages.__anext__()
        except StopAsyncIteration:
            return {"entries": entries, "continuationToken": None}
        async for blob in page:
            entries.append({"name": blob.name})
        return {"entries": entries, "continuationToken": pages.continuation_token}

    async def close(self) -> None:
        await self._service.close()


class AzureDriver(StorageDriver):
    """Storage driver for Azure Blob Storage.

    Args:
        config: Driver configuration; ``az_credentials`` name the storage account
        client: Optional AzureBlobClient; defaults to the aio SDK client
    """

    def __init__(self, config: DriverConfig | dict[str, Any], client: AzureBlobClient | None = None):
        super().__init__(config)
        credentials = self.config.az_credentials
        if credentials is None and not self.config.read_url_prefix:
            raise ConfigurationError("Azure driver requires az_credentials.account_name or read_url_prefix")
        if client is None:
            if credentials is None:
                raise ConfigurationError("Azure driver requires az_credentials when no client is given")
            client = AioBlobServiceClient(credentials)
        self._client = client

    @property
    def backend_type(self) -> str:
        return "azure"

    def get_read_url_prefix(self) -> str:
        if self.config.read_url_prefix:
            return self.config.read_url_prefix.rstrip("/") + "/"
        return f"https://{self.config.az_credentials.account_name}.blob.core.windows.net/{self.bucket}/"

    async def close(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()

    async def _create_bucket_if_absent(self) -> None:
        await self._client.create_container_if_not_exists(self.bucket)

    async def _write_object(self, request: WriteRequest, chunks: AsyncIterator[bytes]) -> None:
        await self._client.upload_block_blob(
            self.bucket,
            self.object_key(request.storage_top_level, request.path),
            chunks,
            request.content_type,
            self.config.cache_control,
        )

    async def _list_page(self, storage_top_level: str, continuation_token: str | None) -> ListingPage:
        prefix = self.namespace_prefix(storage_top_level)
        segment = await self._client.list_blobs_segment(self.bucket, prefix, continuation_token, self.page_size)
        return page_from_azure(segment, prefix)
