"""Tests for the filesystem blob store."""

import pytest
import pytest_asyncio

from build_registry.storage import (
    ContainerNotFoundError,
    FileBlobStore,
    FileNotFoundInStoreError,
    InvalidPathError,
    StoredFile,
)


@pytest_asyncio.fixture
async def blobs(tmp_path) -> FileBlobStore:
    store = FileBlobStore(tmp_path / "storage")
    await store.init()
    await store.create_container("registry-ui")
    return store


class TestContainers:
    """Test cases for container management."""

    @pytest.mark.asyncio
    async def test_create_is_idempotent(self, blobs):
        await blobs.create_container("registry-ui")
        await blobs.create_container("registry-api")

        assert await blobs.list_containers() == ["registry-api", "registry-ui"]
        assert await blobs.has_container("registry-api")
        assert not await blobs.has_container("registry-missing")

    @pytest.mark.asyncio
    async def test_delete(self, blobs):
        await blobs.upload_files("registry-ui", [StoredFile("b1/a.txt", b"a")])
        await blobs.delete_container("registry-ui")

        assert not await blobs.has_container("registry-ui")
        with pytest.raises(ContainerNotFoundError):
            await blobs.delete_container("registry-ui")

    @pytest.mark.asyncio
    async def test_container_cannot_escape_root(self, blobs):
        assert not await blobs.has_container("../outside")
        with pytest.raises(InvalidPathError):
            await blobs.create_container("../outside")


class TestFiles:
    """Test cases for file upload, download and deletion."""

    @pytest.mark.asyncio
    async def test_upload_and_download(self, blobs):
        result = await blobs.upload_files(
            "registry-ui",
            [
                StoredFile("b1/storybook/index.html", b"<html></html>", "text/html"),
                StoredFile("b1/storybook/assets/app.js", b"console.log(1)"),
            ],
        )

        assert result.ok
        assert result.uploaded == ["b1/storybook/index.html", "b1/storybook/assets/app.js"]
        assert await blobs.has_file("registry-ui", "b1/storybook/assets/app.js")

        stored = await blobs.download_file("registry-ui", "b1/storybook/index.html")
        assert stored.content == b"<html></html>"
        assert stored.mime_type == "text/html"

    @pytest.mark.asyncio
    async def test_download_unknown_type(self, blobs):
        await blobs.upload_files("registry-ui", [StoredFile("b1/blob.unknownext", b"x")])
        stored = await blobs.download_file("registry-ui", "b1/blob.unknownext")
        assert stored.mime_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_download_missing(self, blobs):
        assert not await blobs.has_file("registry-ui", "b1/nope.txt")
        with pytest.raises(FileNotFoundInStoreError):
            await blobs.download_file("registry-ui", "b1/nope.txt")

    @pytest.mark.asyncio
    async def test_upload_to_missing_container(self, blobs):
        with pytest.raises(ContainerNotFoundError):
            await blobs.upload_files("registry-missing", [StoredFile("a.txt", b"a")])

    @pytest.mark.asyncio
    async def test_upload_is_best_effort_per_file(self, blobs):
        result = await blobs.upload_files(
            "registry-ui",
            [StoredFile("b1/ok.txt", b"ok"), StoredFile("../../escape.txt", b"no")],
        )

        assert not result.ok
        assert result.uploaded == ["b1/ok.txt"]
        assert list(result.failed) == ["../../escape.txt"]

    @pytest.mark.asyncio
    async def test_download_cannot_escape_container(self, blobs):
        with pytest.raises(InvalidPathError):
            await blobs.download_file("registry-ui", "../../etc/passwd")

    @pytest.mark.asyncio
    async def test_delete_by_prefix(self, blobs):
        await blobs.upload_files(
            "registry-ui",
            [
                StoredFile("b1/storybook.zip", b"zip"),
                StoredFile("b1/storybook/index.html", b"1"),
                StoredFile("b2/storybook/index.html", b"2"),
            ],
        )

        await blobs.delete_files("registry-ui", "b1/")

        assert not await blobs.has_file("registry-ui", "b1/storybook.zip")
        assert not await blobs.has_file("registry-ui", "b1/storybook/index.html")
        assert await blobs.has_file("registry-ui", "b2/storybook/index.html")

    @pytest.mark.asyncio
    async def test_delete_paths_tolerates_missing(self, blobs):
        await blobs.upload_files("registry-ui", [StoredFile("b1/a.txt", b"a")])

        await blobs.delete_files("registry-ui", ["b1/a.txt", "b1/missing.txt"])
        await blobs.delete_files("registry-missing", "b1/")

        assert not await blobs.has_file("registry-ui", "b1/a.txt")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prefix", ["", "./", "/", "b1/..", ["b1/a.txt", "."]])
    async def test_delete_refuses_container_root(self, blobs, prefix):
        await blobs.upload_files(
            "registry-ui", [StoredFile("b1/a.txt", b"a"), StoredFile("b2/b.txt", b"b")]
        )

        with pytest.raises(InvalidPathError):
            await blobs.delete_files("registry-ui", prefix)

        assert await blobs.has_file("registry-ui", "b1/a.txt")
        assert await blobs.has_file("registry-ui", "b2/b.txt")
