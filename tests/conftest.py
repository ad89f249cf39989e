"""Test configuration and fixtures."""

import io
import zipfile
from datetime import datetime, timedelta
from typing import Callable, Dict

import pytest
import pytest_asyncio

from build_registry.config import Settings
from build_registry.context import RequestContext
from build_registry.primitives import builds_collection_id, utc_now
from build_registry.schemas import Project
from build_registry.services import ProjectService
from build_registry.storage import FileBlobStore, FileDocumentStore, SQLDocumentStore


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing every store at the test's temporary directory."""
    return Settings(
        database_uri=f"file://{tmp_path}/db.json",
        storage_uri=f"file://{tmp_path}/storage",
        purge_concurrency=4,
        log_format="console",
    )


@pytest_asyncio.fixture(params=["file", "sqlite"])
async def ctx(request, tmp_path, settings) -> RequestContext:
    """A request context over a file or SQLite document store."""
    if request.param == "file":
        database = FileDocumentStore(tmp_path / "db.json")
    else:
        database = SQLDocumentStore(f"sqlite:///{tmp_path}/registry.db")
    storage = FileBlobStore(tmp_path / "storage")
    await database.init()
    await storage.init()
    return RequestContext(database=database, storage=storage, user="tester", settings=settings)


@pytest_asyncio.fixture
async def project(ctx) -> Project:
    """A project on the 'main' branch with a 30 day retention window."""
    return await ProjectService(ctx).create(
        {
            "id": "storybook",
            "name": "Storybook",
            "github_repository": "acme/ui",
            "github_default_branch": "main",
            "purge_after_days": 30,
        }
    )


@pytest.fixture
def make_zip() -> Callable[[Dict[str, bytes]], bytes]:
    """Build an in-memory zip archive from {path: content}."""

    def _make(files: Dict[str, bytes]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            for path, content in files.items():
                archive.writestr(path, content)
        return buffer.getvalue()

    return _make


@pytest.fixture
def age_build():
    """Rewrite a build's created_at to ``days`` before ``now``."""

    async def _age(
        ctx: RequestContext, project_id: str, build_id: str, days: int, now: datetime = None
    ) -> None:
        now = now or utc_now()
        await ctx.database.update_document(
            builds_collection_id(project_id),
            build_id,
            {"created_at": (now - timedelta(days=days)).isoformat()},
        )

    return _age


@pytest.fixture
def build_payload():
    """Minimal valid build input."""

    def _payload(build_id: str, labels="main", **extra) -> dict:
        payload = {
            "id": build_id,
            "author_name": "Ada",
            "author_email": "ada@example.com",
            "labels": labels,
        }
        payload.update(extra)
        return payload

    return _payload
