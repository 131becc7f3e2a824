"""Contract tests run against every storage driver."""

import asyncio
import io

import pytest

from gaia_hub.drivers import WriteRequest
from gaia_hub.exceptions import InvalidPath


async def write_text(driver, path, text, storage_top_level="12345", content_type="text/plain"):
    return await driver.perform_write(
        path=path,
        storage_top_level=storage_top_level,
        stream=io.BytesIO(text.encode()),
        content_type=content_type,
        content_length=len(text.encode()),
    )


class TestWriteAndRead:
    """Writes return a read URL that serves the written bytes."""

    @pytest.mark.asyncio
    async def test_hello_world_round_trip(self, driver_kit, hello_stream):
        """Write hello world, fetch it back, list it."""
        driver = driver_kit.driver
        prefix = driver.get_read_url_prefix()

        read_url = await driver.perform_write(
            WriteRequest(
                path="foo.txt",
                storage_top_level="12345",
                stream=hello_stream,
                content_type="application/octet-stream",
                content_length=12,
            )
        )

        assert read_url.startswith(prefix + "12345")
        assert read_url == prefix + "12345/foo.txt"
        data, content_type = await driver_kit.fetch(read_url)
        assert data == b"hello world"
        assert content_type == "application/octet-stream"

        listing = await driver.list_files("12345")
        assert listing.entries == ["foo.txt"]
        assert listing.continuation_token is None

    @pytest.mark.asyncio
    async def test_content_type_is_preserved(self, driver_kit):
        """The declared content type comes back with the bytes."""
        read_url = await write_text(driver_kit.driver, "index.html", "<p>hi</p>", content_type="text/html")

        data, content_type = await driver_kit.fetch(read_url)
        assert data == b"<p>hi</p>"
        assert content_type == "text/html"

    @pytest.mark.asyncio
    async def test_content_length_bounds_the_read(self, driver_kit):
        """Only content_length bytes are taken from the stream."""
        read_url = await driver_kit.driver.perform_write(
            path="short.txt",
            storage_top_level="12345",
            stream=io.BytesIO(b"hello world"),
            content_type="text/plain",
            content_length=5,
        )

        data, _ = await driver_kit.fetch(read_url)
        assert data == b"hello"

    @pytest.mark.asyncio
    async def test_nested_paths(self, driver_kit):
        """Paths may contain subdirectories."""
        read_url = await write_text(driver_kit.driver, "foo/bar.txt", "nested")

        data, _ = await driver_kit.fetch(read_url)
        assert data == b"nested"
        assert (await driver_kit.driver.list_files("12345")).entries == ["foo/bar.txt"]

    @pytest.mark.asyncio
    async def test_overwrite_keeps_one_entry(self, driver_kit):
        """Writing the same path twice lists once and serves the second payload."""
        driver = driver_kit.driver
        await write_text(driver, "foo.txt", "first")
        read_url = await write_text(driver, "foo.txt", "second")

        listing = await driver.list_files("12345")
        assert listing.entries == ["foo.txt"]
        data, _ = await driver_kit.fetch(read_url)
        assert data == b"second"

    @pytest.mark.asyncio
    async def test_concurrent_writes_to_different_paths(self, driver_kit):
        """Concurrent writes on one instance all land."""
        driver = driver_kit.driver
        paths = [f"file-{i}.txt" for i in range(10)]

        await asyncio.gather(*(write_text(driver, path, path) for path in paths))

        listing = await driver.list_files("12345")
        assert set(listing.entries) == set(paths)


class TestInvalidPaths:
    """Traversal paths are rejected before any backend call."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path",
        ["../foo.js", "foo/../../bar", "..", "/etc/passwd", "a\\..\\b", "", "dir/", "a//b.txt", "./c.txt"],
    )
    async def test_traversal_rejected_without_io(self, driver_kit, path):
        with pytest.raises(InvalidPath) as exc_info:
            await driver_kit.driver.perform_write(
                path=path,
                storage_top_level="12345",
                stream=io.BytesIO(b"x"),
                content_type="text/plain",
                content_length=1,
            )

        assert str(exc_info.value) == "Invalid Path"
        assert driver_kit.backend_calls() == 0

    @pytest.mark.asyncio
    async def test_bare_request_rejected(self, driver_kit):
        """A request carrying only a bad path fails on the path."""
        with pytest.raises(InvalidPath, match="Invalid Path"):
            await driver_kit.driver.perform_write(path="../foo.js")

    @pytest.mark.asyncio
    async def test_rejected_write_leaves_no_entry(self, driver_kit):
        driver = driver_kit.driver
        await write_text(driver, "foo.txt", "ok")

        with pytest.raises(InvalidPath):
            await write_text(driver, "../foo.js", "bad")

        assert (await driver.list_files("12345")).entries == ["foo.txt"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("storage_top_level", ["..", "a/b", "", "../12345"])
    async def test_invalid_namespace_rejected(self, driver_kit, storage_top_level):
        with pytest.raises(InvalidPath):
            await write_text(driver_kit.driver, "foo.txt", "x", storage_top_level=storage_top_level)
        with pytest.raises(InvalidPath):
            await driver_kit.driver.list_files(storage_top_level)
        assert driver_kit.backend_calls() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content_length", [-1, True, 1.5, None])
    async def test_bad_content_length_rejected(self, driver_kit, content_length):
        with pytest.raises(ValueError):
            await driver_kit.driver.perform_write(
                path="foo.txt",
                storage_top_level="12345",
                stream=io.BytesIO(b"x"),
                content_type="text/plain",
                content_length=content_length,
            )


class TestListing:
    """Listings are exact, namespaced and fully drained."""

    @pytest.mark.asyncio
    async def test_empty_namespace(self, driver_kit):
        listing = await driver_kit.driver.list_files("12345")

        assert listing.entries == []
        assert listing.continuation_token is None

    @pytest.mark.asyncio
    async def test_namespaces_do_not_leak(self, driver_kit):
        """Entries from other namespaces, including prefix-sharing ones, are excluded."""
        driver = driver_kit.driver
        await write_text(driver, "a.txt", "a", storage_top_level="123")
        await write_text(driver, "b.txt", "b", storage_top_level="1234")
        await write_text(driver, "c.txt", "c", storage_top_level="123")

        assert set((await driver.list_files("123")).entries) == {"a.txt", "c.txt"}
        assert (await driver.list_files("1234")).entries == ["b.txt"]

    @pytest.mark.asyncio
    async def test_listing_matches_written_set(self, driver_kit):
        driver = driver_kit.driver
        written = {"a.txt", "dir/b.txt", "dir/sub/c.txt", "d.json"}
        for path in written:
            await write_text(driver, path, path)

        listing = await driver.list_files("12345")
        assert set(listing.entries) == written
        assert len(listing.entries) == len(written)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["foo.txt", "dir/b.txt", ".profile", "..foo", "a/b.c/d..e"])
    async def test_accepted_path_lists_back_unchanged(self, driver_kit, path):
        """Every path a write accepts is listed exactly as written, on every backend."""
        await write_text(driver_kit.driver, path, "x")

        assert (await driver_kit.driver.list_files("12345")).entries == [path]

    @pytest.mark.asyncio
    async def test_full_listing_drains_all_pages(self, paged_driver_kit):
        """With a page size of 2, five files still come back in one call."""
        driver = paged_driver_kit.driver
        paths = [f"file-{i}.txt" for i in range(5)]
        for path in paths:
            await write_text(driver, path, path)

        listing = await driver.list_files("12345")

        assert listing.entries == sorted(paths)
        assert listing.continuation_token is None

    @pytest.mark.asyncio
    async def test_token_returns_one_page(self, paged_driver_kit):
        """A caller-supplied token fetches exactly one backend page."""
        driver = paged_driver_kit.driver
        paths = [f"file-{i}.txt" for i in range(5)]
        for path in paths:
            await write_text(driver, path, path)

        page = await driver.list_files("12345", continuation_token="2")
        assert page.entries == ["file-2.txt", "file-3.txt"]
        assert page.continuation_token == "4"

        last = await driver.list_files("12345", continuation_token=page.continuation_token)
        assert last.entries == ["file-4.txt"]
        assert last.continuation_token is None


class TestReadUrlPrefix:
    def test_prefix_is_stable(self, driver_kit):
        driver = driver_kit.driver
        assert driver.get_read_url_prefix() == driver.get_read_url_prefix()
        assert driver.get_read_url_prefix().endswith("/")

    def test_prefix_makes_no_backend_calls(self, driver_kit):
        driver_kit.driver.get_read_url_prefix()
        assert driver_kit.backend_calls() == 0
