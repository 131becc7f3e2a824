"""Configuration management for the Gaia hub driver layer."""

from .settings import AwsCredentials
from .settings import AzureCredentials
from .settings import DriverConfig
from .settings import GcCredentials
from .settings import Settings
from .settings import get_settings
from .settings import reset_settings

__all__ = [
    "AwsCredentials",
    "AzureCredentials",
    "DriverConfig",
    "GcCredentials",
    "Settings",
    "get_settings",
    "reset_settings",
]
