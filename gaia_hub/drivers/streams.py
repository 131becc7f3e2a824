"""Bounded reading of client byte streams.

A write carries a declared ``content_length``; drivers never read more than
that many bytes from the stream. A stream that ends early is not an error.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterable
from collections.abc import AsyncIterator
from typing import BinaryIO
from typing import Union

ByteStream = Union[bytes, bytearray, memoryview, BinaryIO, AsyncIterable[bytes]]

DEFAULT_CHUNK_SIZE = 64 * 1024


async def iter_chunks(
    stream: ByteStream,
    content_length: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """Yield at most ``content_length`` bytes from ``stream``.

    Accepts raw bytes, file-like objects with a sync or async ``read(n)``,
    and async iterables of byte chunks. Blocking ``read`` calls run in a
    worker thread.
    """
    remaining = content_length
    if remaining <= 0:
        return

    if isinstance(stream, (bytes, bytearray, memoryview)):
        data = bytes(stream[:remaining])
        for start in range(0, len(data), chunk_size):
            yield data[start : start + chunk_size]
        return

    read = getattr(stream, "read", None)
    if read is not None and inspect.iscoroutinefunction(read):
        while remaining > 0:
            chunk = await read(min(chunk_size, remaining))
            if not chunk:
                return
            remaining -= len(chunk)
            yield bytes(chunk)
        return

    if hasattr(stream, "__aiter__"):
        async for chunk in stream:
            if not chunk:
                continue
            chunk = bytes(chunk)
            if len(chunk) >= remaining:
                yield chunk[:remaining]
                return
            remaining -= len(chunk)
            yield chunk
        return

    if read is None:
        raise TypeError(f"Unsupported stream type: {type(stream).__name__}")

    while remaining > 0:
        chunk = await asyncio.to_thread(read, min(chunk_size, remaining))
        if not chunk:
            return
        remaining -= len(chunk)
        yield bytes(chunk)


async def read_all(stream: ByteStream, content_length: int) -> bytes:
    """Collect the bounded stream into memory."""
    return b"".join([chunk async for chunk in iter_chunks(stream, content_length)])
