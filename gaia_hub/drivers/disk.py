"""Local Disk Storage Driver.

Stores data files under ``<storage_root_directory>/<top>/<path>`` and their
content types in the metadata sidecar tree. The hub's HTTP layer serves the
files at ``read_url_prefix``, so that prefix is required.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
import weakref
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..config import DriverConfig
from ..exceptions import ConfigurationError
from ..exceptions import InvalidPath
from ..logger_config import log_driver_call
from .base import StorageDriver
from .base import WriteRequest
from .base import validate_path
from .listing import ListingPage
from .listing import page_from_offset
from .metadata import METADATA_DIRNAME
from .metadata import TEMP_DIRNAME
from .metadata import MetadataRecord
from .metadata import MetadataSidecarStore

RESERVED_NAMESPACES = frozenset({METADATA_DIRNAME, TEMP_DIRNAME})
DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class StoredObject:
    data: bytes
    content_type: str


class DiskDriver(StorageDriver):
    """Storage driver for the local filesystem.

    Args:
        config: Driver configuration with ``storage_root_directory`` and ``read_url_prefix``
    """

    def __init__(self, config: DriverConfig | dict[str, Any]):
        super().__init__(config)
        if not self.config.storage_root_directory:
            raise ConfigurationError("Disk driver requires storage_root_directory")
        if not self.config.read_url_prefix:
            raise ConfigurationError("Disk driver requires read_url_prefix")
        self.storage_root_directory = Path(self.config.storage_root_directory).resolve()
        self._metadata = MetadataSidecarStore(self.storage_root_directory)
        self._temp_dir = self.storage_root_directory / TEMP_DIRNAME
        self._object_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def backend_type(self) -> str:
        return "disk"

    @property
    def metadata_store(self) -> MetadataSidecarStore:
        return self._metadata

    def get_read_url_prefix(self) -> str:
        return self.config.read_url_prefix.rstrip("/") + "/"

    def _validate_namespace(self, storage_top_level: str | None) -> None:
        super()._validate_namespace(storage_top_level)
        if storage_top_level in RESERVED_NAMESPACES:
            raise InvalidPath(storage_top_level)

    def data_path(self, storage_top_level: str, path: str) -> Path:
        return self.storage_root_directory / storage_top_level / path

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._object_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._object_locks[key] = lock
        return lock

    async def _create_bucket_if_absent(self) -> None:
        await asyncio.to_thread(self.storage_root_directory.mkdir, parents=True, exist_ok=True)

    async def _spool_to_temp(self, chunks: AsyncIterator[bytes]) -> Path:
        """Write the chunks to a private temp file and return its path."""
        await asyncio.to_thread(self._temp_dir.mkdir, parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=self._temp_dir)
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                async for chunk in chunks:
                    await asyncio.to_thread(f.write, chunk)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise
        return temp_path

    def _commit(self, temp_path: Path, target: Path) -> Path | None:
        """Move ``temp_path`` over ``target``, returning a backup of the replaced file."""
        backup = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if target.is_file():
                fd, backup_name = tempfile.mkstemp(dir=self._temp_dir)
                os.close(fd)
                os.replace(target, backup_name)
                backup = Path(backup_name)
            os.replace(temp_path, target)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            if backup is not None:
                os.replace(backup, target)
            raise
        return backup

    @staticmethod
    def _rollback(target: Path, backup: Path | None) -> None:
        if backup is not None:
            os.replace(backup, target)
        else:
            target.unlink(missing_ok=True)

    async def _write_object(self, request: WriteRequest, chunks: AsyncIterator[bytes]) -> None:
        top, path = request.storage_top_level, request.path
        target = self.data_path(top, path)
        temp_path = await self._spool_to_temp(chunks)
        # Data then metadata, under one lock; a failed metadata write restores the previous data
        async with self._lock_for(self.object_key(top, path)):
            backup = await asyncio.to_thread(self._commit, temp_path, target)
            try:
                await self._metadata.write(top, path, MetadataRecord(content_type=request.content_type))
            except BaseException:
                await asyncio.to_thread(self._rollback, target, backup)
                raise
            if backup is not None:
                await asyncio.to_thread(backup.unlink, missing_ok=True)

    def _walk(self, storage_top_level: str) -> list[str]:
        base = self.storage_root_directory / storage_top_level
        if not base.is_dir():
            return []
        names = []
        for dirpath, _dirnames, filenames in os.walk(base):
            for filename in filenames:
                names.append((Path(dirpath) / filename).relative_to(base).as_posix())
        return sorted(names)

    async def _list_page(self, storage_top_level: str, continuation_token: str | None) -> ListingPage:
        offset = 0
        if continuation_token:
            if not continuation_token.isdigit():
                raise ValueError(f"Invalid continuation token: {continuation_token!r}")
            offset = int(continuation_token)
        names = await asyncio.to_thread(self._walk, storage_top_level)
        return page_from_offset(names, offset, self.page_size)

    @log_driver_call("read_object")
    async def read_object(self, storage_top_level: str, path: str) -> StoredObject:
        """Read a stored file and its content type, for the hub's HTTP layer.

        Raises:
            InvalidPath: path or namespace fails validation
            FileNotFoundError: nothing has been written at this path
        """
        validate_path(path)
        self._validate_namespace(storage_top_level)
        async with self._lock_for(self.object_key(storage_top_level, path)):
            data = await asyncio.to_thread(self.data_path(storage_top_level, path).read_bytes)
            record = await self._metadata.read(storage_top_level, path)
        content_type = record.content_type if record is not None else DEFAULT_CONTENT_TYPE
        return StoredObject(data=data, content_type=content_type)
