"""Gaia hub storage gateway: the driver abstraction layer."""

from .drivers import DriverType
from .drivers import FileListing
from .drivers import StorageDriver
from .drivers import WriteRequest
from .drivers import create_driver
from .drivers import get_driver
from .exceptions import ConfigurationError
from .exceptions import GaiaHubError
from .exceptions import InvalidPath
from .exceptions import UpstreamError

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "DriverType",
    "FileListing",
    "GaiaHubError",
    "InvalidPath",
    "StorageDriver",
    "UpstreamError",
    "WriteRequest",
    "create_driver",
    "get_driver",
]
