"""
Local filesystem stores (file:// URIs).

FileDocumentStore structure:
    /var/lib/registry/db.json     # {collection_id: {document_id: document}}

FileBlobStore structure:
    /var/lib/registry/storage/
    └── registry-<project>/       # one directory per container
        └── <build>/
            ├── storybook.zip     # raw uploaded archive
            └── storybook/        # extracted files
"""

from __future__ import annotations

import asyncio
import json
import mimetypes
import shutil
from pathlib import Path
from typing import List, Sequence, Union

import structlog

from .base import BlobStore, StoredFile, UploadResult
from .errors import ContainerNotFoundError, FileNotFoundInStoreError, InvalidPathError
from .memory import MemoryDocumentStore

logger = structlog.get_logger()


class FileDocumentStore(MemoryDocumentStore):
    """Document store persisted to a single JSON file after every mutation."""

    name = "file"

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)

    async def init(self) -> None:
        """Load the JSON file, creating it (and its directory) if missing."""
        self._db = await asyncio.to_thread(self._read)

    def _read(self) -> dict:
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("{}", encoding="utf-8")
            return {}
        raw = self.path.read_text(encoding="utf-8")
        return json.loads(raw) if raw.strip() else {}

    def _write(self, payload: str) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(self.path)

    async def _persist(self) -> None:
        payload = json.dumps(self._db, indent=2, default=str)
        await asyncio.to_thread(self._write, payload)


class FileBlobStore(BlobStore):
    """Blob store backed by a directory tree."""

    name = "file"

    def __init__(self, base_path: Path):
        """Initialize with the root directory holding all containers.

        Args:
            base_path: Absolute or relative path of the storage root
        """
        self.base_path = Path(base_path).resolve()

    async def init(self) -> None:
        await asyncio.to_thread(self.base_path.mkdir, parents=True, exist_ok=True)

    def _container_path(self, container_id: str) -> Path:
        path = (self.base_path / container_id).resolve()
        if path.parent != self.base_path:
            raise InvalidPathError(container_id, "")
        return path

    def _file_path(self, container_id: str, path: str) -> Path:
        container = self._container_path(container_id)
        full_path = (container / path.lstrip("/")).resolve()
        if full_path != container and container not in full_path.parents:
            raise InvalidPathError(container_id, path)
        return full_path

    async def list_containers(self) -> List[str]:
        def _list() -> List[str]:
            if not self.base_path.exists():
                return []
            return sorted(entry.name for entry in self.base_path.iterdir() if entry.is_dir())

        return await asyncio.to_thread(_list)

    async def create_container(self, container_id: str) -> None:
        path = self._container_path(container_id)
        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)

    async def delete_container(self, container_id: str) -> None:
        path = self._container_path(container_id)
        if not path.is_dir():
            raise ContainerNotFoundError(container_id)
        await asyncio.to_thread(shutil.rmtree, path)

    async def has_container(self, container_id: str) -> bool:
        try:
            return self._container_path(container_id).is_dir()
        except InvalidPathError:
            return False

    async def upload_files(self, container_id: str, files: Sequence[StoredFile]) -> UploadResult:
        container = self._container_path(container_id)
        if not container.is_dir():
            raise ContainerNotFoundError(container_id)

        result = UploadResult()
        for stored in files:
            try:
                full_path = self._file_path(container_id, stored.path)
                await asyncio.to_thread(_write_bytes, full_path, stored.content)
                result.uploaded.append(stored.path)
            except (OSError, InvalidPathError) as e:
                logger.warning(
                    "blob_upload_failed",
                    container_id=container_id,
                    path=stored.path,
                    error=str(e),
                )
                result.failed[stored.path] = str(e)
        return result

    async def delete_files(
        self, container_id: str, paths_or_prefix: Union[str, Sequence[str]]
    ) -> None:
        container = self._container_path(container_id)
        if not container.is_dir():
            return
        paths = [paths_or_prefix] if isinstance(paths_or_prefix, str) else list(paths_or_prefix)
        full_paths = [self._file_path(container_id, path) for path in paths]
        for path, full_path in zip(paths, full_paths):
            # Emptying a whole container is delete_container's job.
            if full_path == container:
                raise InvalidPathError(container_id, path)
        for full_path in full_paths:
            await asyncio.to_thread(_remove, full_path)

    async def has_file(self, container_id: str, path: str) -> bool:
        try:
            return self._file_path(container_id, path).is_file()
        except InvalidPathError:
            return False

    async def download_file(self, container_id: str, path: str) -> StoredFile:
        full_path = self._file_path(container_id, path)
        if not full_path.is_file():
            raise FileNotFoundInStoreError(container_id, path)
        content = await asyncio.to_thread(full_path.read_bytes)
        mime_type, _ = mimetypes.guess_type(full_path.name)
        return StoredFile(
            path=path, content=content, mime_type=mime_type or "application/octet-stream"
        )


def _write_bytes(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


def _remove(path: Path) -> None:
    if path.is_dir():
        shutil.rmtree(path, ignore_errors=True)
    elif path.exists():
        path.unlink()
