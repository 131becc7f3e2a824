"""Driver configuration for the Gaia hub storage layer.

``DriverConfig`` is the immutable per-driver configuration. It accepts both
snake_case field names and the camelCase keys of the hub's JSON config files
(``readURL``, ``pageSize``, ``azCredentials``, ``diskSettings`` ...).

``Settings`` reads process-level configuration from ``GAIA_*`` environment
variables (and ``.env``) and can point at a JSON config file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import AliasChoices
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError
from pydantic import model_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

from ..exceptions import ConfigurationError


class AwsCredentials(BaseModel):
    """Credentials for S3. Empty values fall back to the boto3 credential chain."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_key_id: str | None = Field(default=None, validation_alias=AliasChoices("access_key_id", "accessKeyId"))
    secret_access_key: str | None = Field(
        default=None, validation_alias=AliasChoices("secret_access_key", "secretAccessKey")
    )
    session_token: str | None = Field(default=None, validation_alias=AliasChoices("session_token", "sessionToken"))
    region: str | None = None
    endpoint_url: str | None = Field(default=None, validation_alias=AliasChoices("endpoint_url", "endpoint"))


class AzureCredentials(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    account_name: str = Field(validation_alias=AliasChoices("account_name", "accountName"))
    account_key: str = Field(validation_alias=AliasChoices("account_key", "accountKey"))


class GcCredentials(BaseModel):
    """Credentials for Google Cloud Storage. Empty values use application default credentials."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    project_id: str | None = Field(default=None, validation_alias=AliasChoices("project_id", "projectId"))
    key_filename: str | None = Field(default=None, validation_alias=AliasChoices("key_filename", "keyFilename"))


class DriverConfig(BaseModel):
    """Immutable configuration of one storage driver instance."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    driver: str = "aws"
    bucket: str = Field(min_length=1)
    read_url_prefix: str | None = Field(
        default=None, validation_alias=AliasChoices("read_url_prefix", "readURL", "readURLprefix")
    )
    page_size: int = Field(default=100, ge=1, le=1000, validation_alias=AliasChoices("page_size", "pageSize"))
    cache_control: str | None = Field(default=None, validation_alias=AliasChoices("cache_control", "cacheControl"))

    aws_credentials: AwsCredentials = Field(
        default_factory=AwsCredentials, validation_alias=AliasChoices("aws_credentials", "awsCredentials")
    )
    az_credentials: AzureCredentials | None = Field(
        default=None, validation_alias=AliasChoices("az_credentials", "azCredentials")
    )
    gc_credentials: GcCredentials = Field(
        default_factory=GcCredentials, validation_alias=AliasChoices("gc_credentials", "gcCredentials")
    )

    storage_root_directory: str | None = Field(
        default=None, validation_alias=AliasChoices("storage_root_directory", "storageRootDirectory")
    )

    @model_validator(mode="before")
    @classmethod
    def _lift_disk_settings(cls, data: Any) -> Any:
        """Accept ``diskSettings.storageRootDirectory`` from hub config files."""
        if isinstance(data, dict) and isinstance(data.get("diskSettings"), dict):
            disk_settings = data["diskSettings"]
            root = disk_settings.get("storageRootDirectory")
            if root and not data.get("storage_root_directory") and not data.get("storageRootDirectory"):
                data = {**data, "storage_root_directory": root}
        return data

    @classmethod
    def coerce(cls, config: DriverConfig | dict[str, Any]) -> DriverConfig:
        """Build a config from a mapping, turning validation errors into ConfigurationError."""
        if isinstance(config, DriverConfig):
            return config
        try:
            return cls.model_validate(config)
        except ValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ConfigurationError(
                f"Invalid driver configuration: {', '.join(fields)}",
                details={"fields": fields},
            ) from e

    @classmethod
    def from_json_file(cls, path: str | Path, **overrides: Any) -> DriverConfig:
        """Load a hub JSON config file, applying keyword overrides on top."""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read driver config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Driver config file {path} must contain a JSON object")
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.coerce(data)


class Settings(BaseSettings):
    """Process-level settings, read from ``GAIA_*`` environment variables."""

    # === Driver Selection ===
    driver: str | None = Field(default=None, description="Backend name: aws, azure, google-cloud or disk")
    bucket: str | None = Field(default=None, description="Bucket / container name")
    read_url_prefix: str | None = Field(default=None, description="Override for the public read URL prefix")
    page_size: int | None = Field(default=None, description="Listing page size hint")
    storage_root_directory: str | None = Field(default=None, description="Disk driver root directory")
    config_path: str | None = Field(default=None, description="Path to a hub JSON config file")

    # === Logging Configuration ===
    log_level: str = Field(default="INFO", description="Logging level")
    structured_logging: bool = Field(default=True, description="Enable structured JSON logging")
    log_file: str | None = Field(default=None, description="Rotating log file path; stderr when unset")

    model_config = SettingsConfigDict(
        env_prefix="GAIA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def to_driver_config(self) -> DriverConfig:
        """Merge the JSON config file (if any) with environment overrides."""
        overrides = {
            "driver": self.driver,
            "bucket": self.bucket,
            "read_url_prefix": self.read_url_prefix,
            "page_size": self.page_size,
            "storage_root_directory": self.storage_root_directory,
        }
        if self.config_path:
            return DriverConfig.from_json_file(self.config_path, **overrides)
        return DriverConfig.coerce({k: v for k, v in overrides.items() if v is not None})


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        load_dotenv()
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance (primarily for testing)."""
    global _settings
    _settings = None
