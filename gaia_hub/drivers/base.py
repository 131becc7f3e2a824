"""Abstract Base Class for Storage Drivers.

Defines the contract every backend driver implements, plus the path checks
shared by all of them. Subclasses only provide the backend-specific pieces
(bucket initialization, the object write and one listing page); validation,
URL composition, error wrapping and page draining live here so they behave
the same on every backend.
"""

from __future__ import annotations

import asyncio
from abc import ABC
from abc import abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from ..config import DriverConfig
from ..exceptions import BucketMismatchError
from ..exceptions import GaiaHubError
from ..exceptions import InvalidPath
from ..exceptions import UpstreamError
from ..logger_config import log_driver_call
from .listing import ListingPage
from .listing import drain_pages
from .listing import namespace_prefix
from .streams import ByteStream
from .streams import iter_chunks


def validate_path(path: str | None) -> None:
    """Reject paths that could escape the tenant namespace.

    Every segment must be a real name: a path that lists back differently
    from how it was written (``dir/``, ``a//b``, ``./c``) is rejected too.

    Raises:
        InvalidPath: empty, absolute, containing a NUL byte, or with an empty,
            ``.`` or ``..`` segment
    """
    if not isinstance(path, str) or not path:
        raise InvalidPath(path)
    if "\x00" in path or path.startswith(("/", "\\")):
        raise InvalidPath(path)
    segments = path.replace("\\", "/").split("/")
    if any(segment in ("", ".", "..") for segment in segments):
        raise InvalidPath(path)


def validate_storage_top_level(storage_top_level: str | None) -> None:
    """A namespace is a single path segment that passes :func:`validate_path`."""
    validate_path(storage_top_level)
    if "/" in storage_top_level or "\\" in storage_top_level or storage_top_level == ".":
        raise InvalidPath(storage_top_level)


@dataclass
class WriteRequest:
    """A single object write.

    ``stream`` is consumed up to ``content_length`` bytes.
    """

    path: str | None = None
    storage_top_level: str | None = None
    stream: ByteStream | None = None
    content_type: str = "application/octet-stream"
    content_length: int | None = None


@dataclass
class FileListing:
    """Listing result; ``continuation_token`` is None once the namespace is exhausted."""

    entries: list[str] = field(default_factory=list)
    continuation_token: str | None = None


class BucketBinding:
    """Remembers the first bucket a backend client is used with.

    Backend clients call :meth:`check` on every operation; a later call naming
    another bucket raises BucketMismatchError.
    """

    def __init__(self, name: str | None = None):
        self.name = name

    def check(self, name: str) -> None:
        if self.name is None:
            self.name = name
        elif self.name != name:
            raise BucketMismatchError(expected=self.name, actual=name)


class StorageDriver(ABC):
    """Abstract base class for storage drivers.

    Args:
        config: DriverConfig or a mapping in the hub's JSON config shape
    """

    def __init__(self, config: DriverConfig | dict[str, Any]):
        self._config = DriverConfig.coerce(config)
        self._bucket_ready = False
        self._bucket_lock = asyncio.Lock()

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Return the backend identifier (e.g., 'aws', 'disk')."""
        pass

    @property
    def config(self) -> DriverConfig:
        return self._config

    @property
    def bucket(self) -> str:
        return self._config.bucket

    @property
    def page_size(self) -> int:
        return self._config.page_size

    @abstractmethod
    def get_read_url_prefix(self) -> str:
        """Return the constant prefix all read URLs of this driver start with.

        Pure: no I/O, always ends with ``/``.
        """
        pass

    # === Backend hooks ===

    @abstractmethod
    async def _create_bucket_if_absent(self) -> None:
        """Make sure the configured bucket/container exists."""
        pass

    @abstractmethod
    async def _write_object(self, request: WriteRequest, chunks: AsyncIterator[bytes]) -> None:
        """Persist the bounded chunks and the content type for ``request``."""
        pass

    @abstractmethod
    async def _list_page(self, storage_top_level: str, continuation_token: str | None) -> ListingPage:
        """Fetch one backend page of the namespace, entries already relative to it."""
        pass

    def _validate_namespace(self, storage_top_level: str | None) -> None:
        validate_storage_top_level(storage_top_level)

    async def close(self) -> None:
        """Release backend connections. Drivers without any keep the default no-op."""

    async def __aenter__(self) -> StorageDriver:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # === Shared helpers ===

    @staticmethod
    def object_key(storage_top_level: str, path: str) -> str:
        return f"{storage_top_level}/{path}"

    @staticmethod
    def namespace_prefix(storage_top_level: str) -> str:
        return namespace_prefix(storage_top_level)

    def read_url(self, storage_top_level: str, path: str) -> str:
        return f"{self.get_read_url_prefix()}{self.object_key(storage_top_level, path)}"

    @asynccontextmanager
    async def _backend_call(self, operation: str):
        """Wrap backend failures in UpstreamError; driver-layer errors pass through."""
        try:
            yield
        except GaiaHubError:
            raise
        except Exception as e:
            raise UpstreamError(self.backend_type, operation, e) from e

    async def _ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        async with self._bucket_lock:
            if self._bucket_ready:
                return
            async with self._backend_call("ensure_bucket"):
                await self._create_bucket_if_absent()
            self._bucket_ready = True

    # === Contract ===

    @log_driver_call("perform_write")
    async def perform_write(self, request: WriteRequest | None = None, **kwargs: Any) -> str:
        """Write a byte stream to ``storage_top_level/path`` and return its read URL.

        Accepts a WriteRequest or its fields as keyword arguments.

        Raises:
            InvalidPath: path or namespace fails validation (no backend I/O happens)
            ConfigurationError: the backend is bound to a different bucket
            UpstreamError: the backend reported a failure
        """
        if request is None:
            request = WriteRequest(**kwargs)
        validate_path(request.path)
        self._validate_namespace(request.storage_top_level)
        content_length = request.content_length
        if not isinstance(content_length, int) or isinstance(content_length, bool) or content_length < 0:
            raise ValueError("content_length must be a non-negative integer")
        if request.stream is None:
            raise ValueError("stream is required")

        await self._ensure_bucket()
        chunks = iter_chunks(request.stream, request.content_length)
        async with self._backend_call("write"):
            await self._write_object(request, chunks)
        return self.read_url(request.storage_top_level, request.path)

    @log_driver_call("list_files")
    async def list_files(self, storage_top_level: str, continuation_token: str | None = None) -> FileListing:
        """List the paths written under ``storage_top_level``.

        With a continuation token, returns one backend page and the backend's
        next token. Without one, drains every page and returns a listing
        whose ``continuation_token`` is None.
        """
        self._validate_namespace(storage_top_level)
        await self._ensure_bucket()
        async with self._backend_call("list"):
            if continuation_token:
                page = await self._list_page(storage_top_level, continuation_token)
                return FileListing(entries=page.entries, continuation_token=page.next_token)
            entries = await drain_pages(
                lambda token: self._list_page(storage_top_level, token),
                backend=self.backend_type,
            )
        return FileListing(entries=entries, continuation_token=None)
