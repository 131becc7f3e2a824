"""Storage Driver Layer for the Gaia hub.

One contract, four backends (S3, Azure Blob Storage, Google Cloud Storage,
local disk). Each cloud driver takes an injected backend client, so tests and
alternative providers can substitute their own.

Usage:
    from gaia_hub.drivers import create_driver

    driver = create_driver({"driver": "aws", "bucket": "hub"})
    url = await driver.perform_write(
        path="foo.txt",
        storage_top_level="12345",
        stream=b"hello world",
        content_type="text/plain",
        content_length=11,
    )
    listing = await driver.list_files("12345")
"""

from .base import FileListing
from .base import StorageDriver
from .base import WriteRequest
from .base import validate_path
from .factory import DriverType
from .factory import close_driver
from .factory import create_driver
from .factory import get_driver
from .factory import reset_driver
from .listing import ListingPage

__all__ = [
    "DriverType",
    "FileListing",
    "ListingPage",
    "StorageDriver",
    "WriteRequest",
    "close_driver",
    "create_driver",
    "get_driver",
    "reset_driver",
    "validate_path",
]
