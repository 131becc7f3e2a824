"""Storage Driver Factory.

Selects the driver class from the configured backend name. The process-wide
driver is built from ``Settings`` (``GAIA_*`` environment variables and the
optional JSON config file).
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING
from typing import Any

from ..config import DriverConfig
from ..config import get_settings
from ..exceptions import ConfigurationError
from ..logger_config import setup_logging

if TYPE_CHECKING:
    from .base import StorageDriver


class DriverType(Enum):
    """Available storage backends."""

    AWS = "aws"
    AZURE = "azure"
    GOOGLE_CLOUD = "google-cloud"
    DISK = "disk"

    @classmethod
    def from_name(cls, name: str) -> DriverType:
        """Resolve a backend name, accepting the common aliases."""
        normalized = (name or "").strip().lower()
        aliases = {
            "s3": cls.AWS,
            "az": cls.AZURE,
            "gc": cls.GOOGLE_CLOUD,
            "gcs": cls.GOOGLE_CLOUD,
            "gcp": cls.GOOGLE_CLOUD,
            "local": cls.DISK,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise ConfigurationError(
                f"Unsupported storage driver: {name!r}",
                details={"supported": [t.value for t in cls]},
            ) from None


def create_driver(config: DriverConfig | dict[str, Any], client: Any = None) -> StorageDriver:
    """Create a driver for ``config.driver``.

    Args:
        config: DriverConfig or a mapping in the hub's JSON config shape
        client: Optional backend client to inject (cloud drivers only)

    Returns:
        Configured StorageDriver instance
    """
    config = DriverConfig.coerce(config)
    driver_type = DriverType.from_name(config.driver)

    if driver_type is DriverType.AWS:
        from .s3 import S3Driver

        return S3Driver(config, client=client)
    if driver_type is DriverType.AZURE:
        from .azure import AzureDriver

        return AzureDriver(config, client=client)
    if driver_type is DriverType.GOOGLE_CLOUD:
        from .gcs import GcsDriver

        return GcsDriver(config, client=client)

    from .disk import DiskDriver

    if client is not None:
        raise ConfigurationError("The disk driver does not take a backend client")
    return DiskDriver(config)


# Singleton instance for the application
_driver_instance: StorageDriver | None = None
# Closes scheduled by reset_driver inside a running loop
_closing_tasks: set[asyncio.Task] = set()


def get_driver(**overrides: Any) -> StorageDriver:
    """Get the global driver instance.

    Creates the instance on first call from ``Settings``; keyword overrides
    are applied on top of the settings-derived config (first call only).
    """
    global _driver_instance

    if _driver_instance is None:
        settings = get_settings()
        setup_logging(settings.log_level, settings.structured_logging, settings.log_file)
        config = settings.to_driver_config()
        if overrides:
            config = DriverConfig.coerce({**config.model_dump(), **overrides})
        _driver_instance = create_driver(config)

    return _driver_instance


def reset_driver() -> None:
    """Close and drop the global driver instance.

    Outside an event loop the close runs to completion; inside one it is
    scheduled on the running loop. Async callers can await ``close_driver``.
    """
    global _driver_instance
    driver, _driver_instance = _driver_instance, None
    if driver is None:
        return
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(driver.close())
        return
    task = loop.create_task(driver.close())
    _closing_tasks.add(task)
    task.add_done_callback(_closing_tasks.discard)


async def close_driver() -> None:
    """Close and drop the global driver instance from async code."""
    global _driver_instance
    driver, _driver_instance = _driver_instance, None
    if driver is not None:
        await driver.close()


def get_driver_info() -> dict:
    """Describe the active driver for debugging/monitoring."""
    driver = get_driver()
    return {
        "backend_type": driver.backend_type,
        "bucket": driver.bucket,
        "read_url_prefix": driver.get_read_url_prefix(),
        "page_size": driver.page_size,
    }
