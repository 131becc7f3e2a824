"""Unit tests for bounded stream reading."""

import io

import pytest

from gaia_hub.drivers.streams import iter_chunks
from gaia_hub.drivers.streams import read_all


async def async_chunks(*chunks):
    for chunk in chunks:
        yield chunk


class AsyncReader:
    """Mimics an upload object with ``async def read(n)``."""

    def __init__(self, data: bytes):
        self._buffer = io.BytesIO(data)

    async def read(self, n: int = -1) -> bytes:
        return self._buffer.read(n)


class TestReadAll:
    @pytest.mark.asyncio
    async def test_file_like(self):
        assert await read_all(io.BytesIO(b"hello world"), 11) == b"hello world"

    @pytest.mark.asyncio
    async def test_declared_length_longer_than_stream(self):
        """A stream shorter than content_length ends the read early."""
        assert await read_all(io.BytesIO(b"hello world"), 12) == b"hello world"

    @pytest.mark.asyncio
    async def test_declared_length_shorter_than_stream(self):
        assert await read_all(io.BytesIO(b"hello world"), 5) == b"hello"

    @pytest.mark.asyncio
    async def test_bytes(self):
        assert await read_all(b"hello world", 5) == b"hello"

    @pytest.mark.asyncio
    async def test_async_iterable_is_cut_mid_chunk(self):
        assert await read_all(async_chunks(b"hel", b"", b"lo wor", b"ld"), 7) == b"hello w"

    @pytest.mark.asyncio
    async def test_async_reader(self):
        assert await read_all(AsyncReader(b"hello world"), 100) == b"hello world"

    @pytest.mark.asyncio
    async def test_zero_length_reads_nothing(self):
        stream = io.BytesIO(b"hello")
        assert await read_all(stream, 0) == b""
        assert stream.tell() == 0

    @pytest.mark.asyncio
    async def test_unsupported_stream(self):
        with pytest.raises(TypeError):
            await read_all(object(), 10)


class TestIterChunks:
    @pytest.mark.asyncio
    async def test_chunk_size_respected(self):
        chunks = [chunk async for chunk in iter_chunks(io.BytesIO(b"a" * 10), 10, chunk_size=4)]
        assert [len(chunk) for chunk in chunks] == [4, 4, 2]

    @pytest.mark.asyncio
    async def test_bytes_are_chunked(self):
        chunks = [chunk async for chunk in iter_chunks(b"abcdef", 5, chunk_size=2)]
        assert chunks == [b"ab", b"cd", b"e"]
