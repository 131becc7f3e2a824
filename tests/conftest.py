"""The pytest configuration for the Gaia hub driver tests.

``driver_kit`` runs a test once per backend: the three cloud drivers against
their in-memory fakes and the disk driver against a temporary directory.
"""

from __future__ import annotations

import io
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pytest

from gaia_hub.drivers.azure import AzureDriver
from gaia_hub.drivers.base import StorageDriver
from gaia_hub.drivers.disk import DiskDriver
from gaia_hub.drivers.gcs import GcsDriver
from gaia_hub.drivers.s3 import S3Driver
from tests.shared.fakes import FakeAzureBlobClient
from tests.shared.fakes import FakeGcsClient
from tests.shared.fakes import FakeS3Client

BACKENDS = ["aws", "azure", "google-cloud", "disk"]


@dataclass
class DriverKit:
    """A driver plus the hooks a test needs to observe its backend."""

    driver: StorageDriver
    fetch: Callable[[str], Awaitable[tuple[bytes, str]]]
    backend_calls: Callable[[], int]


def build_driver_kit(backend: str, root: Path, page_size: int = 100) -> DriverKit:
    if backend == "disk":
        driver = DiskDriver(
            {
                "driver": "disk",
                "bucket": "hub",
                "readURL": "http://localhost:4000/",
                "pageSize": page_size,
                "diskSettings": {"storageRootDirectory": str(root / "hub")},
            }
        )

        async def fetch_disk(url: str) -> tuple[bytes, str]:
            relative = url[len(driver.get_read_url_prefix()) :]
            storage_top_level, path = relative.split("/", 1)
            stored = await driver.read_object(storage_top_level, path)
            return stored.data, stored.content_type

        def disk_calls() -> int:
            hub_root = root / "hub"
            return len(list(hub_root.rglob("*"))) if hub_root.exists() else 0

        return DriverKit(driver, fetch_disk, disk_calls)

    if backend == "aws":
        client = FakeS3Client()
        driver = S3Driver({"bucket": "spokes", "pageSize": page_size}, client=client)
    elif backend == "azure":
        client = FakeAzureBlobClient()
        driver = AzureDriver(
            {
                "driver": "azure",
                "bucket": "spokes",
                "pageSize": page_size,
                "azCredentials": {"accountName": "mock-azure", "accountKey": "mock-azure-key"},
            },
            client=client,
        )
    else:
        client = FakeGcsClient()
        driver = GcsDriver({"driver": "google-cloud", "bucket": "spokes", "pageSize": page_size}, client=client)

    async def fetch_cloud(url: str) -> tuple[bytes, str]:
        return client.fetch(url, driver.get_read_url_prefix())

    return DriverKit(driver, fetch_cloud, lambda: len(client.calls))


@pytest.fixture(params=BACKENDS)
def driver_kit(request, tmp_path) -> DriverKit:
    return build_driver_kit(request.param, tmp_path)


@pytest.fixture(params=BACKENDS)
def paged_driver_kit(request, tmp_path) -> DriverKit:
    """Same as ``driver_kit`` with a listing page size of 2."""
    return build_driver_kit(request.param, tmp_path, page_size=2)


@pytest.fixture
def hello_stream() -> io.BytesIO:
    return io.BytesIO(b"hello world")
