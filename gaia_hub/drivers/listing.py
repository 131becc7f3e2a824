"""Listing Cursor Adapter.

Every backend pages its listings differently: S3 returns ``Contents`` plus a
``NextContinuationToken``, Azure returns a blob segment with a continuation
token, GCS returns a page of blobs and a ``next_page_token``, and the disk
driver pages over a sorted directory walk. The helpers here turn each of
those into a :class:`ListingPage` and drain pages into one entry list.
"""

from __future__ import annotations

from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from ..exceptions import UpstreamError


@dataclass
class ListingPage:
    """One normalized backend page."""

    entries: list[str] = field(default_factory=list)
    next_token: str | None = None


def namespace_prefix(storage_top_level: str) -> str:
    """Listing prefix for a namespace; the trailing slash keeps "123" out of "1234"."""
    return f"{storage_top_level}/"


def strip_prefix(names: Iterable[str], prefix: str) -> list[str]:
    """Drop ``prefix`` from each name, skipping names outside it and bare directory markers."""
    stripped = []
    for name in names:
        if not name.startswith(prefix):
            continue
        relative = name[len(prefix) :]
        if not relative or relative.endswith("/"):
            continue
        stripped.append(relative)
    return stripped


def page_from_s3(response: dict[str, Any], prefix: str) -> ListingPage:
    """Normalize a ``list_objects_v2`` response."""
    names = [item["Key"] for item in response.get("Contents") or []]
    next_token = response.get("NextContinuationToken") if response.get("IsTruncated") else None
    return ListingPage(entries=strip_prefix(names, prefix), next_token=next_token or None)


def page_from_azure(segment: dict[str, Any], prefix: str) -> ListingPage:
    """Normalize an Azure blob segment ``{"entries": [{"name": ...}], "continuationToken": ...}``."""
    names = [blob["name"] for blob in segment.get("entries") or []]
    return ListingPage(entries=strip_prefix(names, prefix), next_token=segment.get("continuationToken") or None)


def page_from_gcs(blobs: Iterable[Any], next_page_token: str | None, prefix: str) -> ListingPage:
    """Normalize a GCS page of blob objects (anything with a ``name``)."""
    names = [blob.name for blob in blobs]
    return ListingPage(entries=strip_prefix(names, prefix), next_token=next_page_token or None)


def page_from_offset(names: list[str], offset: int, page_size: int) -> ListingPage:
    """Slice an already-sorted name list; the token is the next offset."""
    end = offset + page_size
    next_token = str(end) if end < len(names) else None
    return ListingPage(entries=names[offset:end], next_token=next_token)


async def drain_pages(
    fetch_page: Callable[[str | None], Awaitable[ListingPage]],
    first_token: str | None = None,
    backend: str = "backend",
) -> list[str]:
    """Fetch pages until the backend reports no further token.

    Entries are returned in backend order, each page exactly once. A backend
    that hands back a token it already issued raises UpstreamError.
    """
    entries: list[str] = []
    seen_tokens: set[str] = {first_token} if first_token else set()
    token = first_token
    while True:
        page = await fetch_page(token)
        entries.extend(page.entries)
        if not page.next_token:
            return entries
        if page.next_token in seen_tokens:
            raise UpstreamError(
                backend,
                "list",
                RuntimeError(f"continuation token repeated: {page.next_token!r}"),
            )
        seen_tokens.add(page.next_token)
        token = page.next_token
