"""Metadata Sidecar Store for the disk driver.

The filesystem cannot attach a content type to a file, so each data file
under ``<root>/<top>/<path>`` gets a JSON twin under
``<root>/.gaia-metadata/<top>/<path>``.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

METADATA_DIRNAME = ".gaia-metadata"
TEMP_DIRNAME = ".gaia-tmp"


class MetadataRecord(BaseModel):
    """Per-object metadata; unknown keys are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    content_type: str = Field(alias="content-type")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


def atomic_write_bytes(target: Path, data: bytes, temp_dir: Path) -> None:
    """Write ``data`` to a temp file in ``temp_dir`` and rename it over ``target``."""
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_dir.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(dir=temp_dir)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(temp_name, target)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


class MetadataSidecarStore:
    """Reads and writes sidecar metadata below ``root/.gaia-metadata``."""

    def __init__(self, root: Path):
        self._root = root
        self._metadata_root = root / METADATA_DIRNAME
        self._temp_dir = root / TEMP_DIRNAME

    @property
    def metadata_root(self) -> Path:
        return self._metadata_root

    def metadata_path(self, storage_top_level: str, path: str) -> Path:
        return self._metadata_root / storage_top_level / path

    async def write(self, storage_top_level: str, path: str, record: MetadataRecord) -> None:
        target = self.metadata_path(storage_top_level, path)
        await asyncio.to_thread(atomic_write_bytes, target, record.to_json().encode("utf-8"), self._temp_dir)

    async def read(self, storage_top_level: str, path: str) -> MetadataRecord | None:
        """Return the stored record, or None if the object has no sidecar."""
        target = self.metadata_path(storage_top_level, path)
        try:
            raw = await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError:
            return None
        return MetadataRecord.model_validate_json(raw)
