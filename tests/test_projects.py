"""Tests for the project service."""

import dataclasses

import pytest

from build_registry.enums import LabelType
from build_registry.errors import (
    AlreadyExistsError,
    BackendUnavailableError,
    NotFoundError,
    ValidationError,
)
from build_registry.primitives import (
    PROJECTS_COLLECTION,
    builds_collection_id,
    labels_collection_id,
    project_container_id,
)
from build_registry.services import LabelService, ProjectService
from build_registry.storage import SQLDocumentStore


def project_data(**overrides) -> dict:
    data = {
        "id": "design-system",
        "name": "Design System",
        "github_repository": "acme/design-system",
    }
    data.update(overrides)
    return data


class TestProjectCreate:
    """Test cases for project creation."""

    @pytest.mark.asyncio
    async def test_create_provisions_storage(self, ctx):
        project = await ProjectService(ctx).create(project_data())

        assert project.id == "design-system"
        assert project.github_default_branch == "main"
        assert project.purge_after_days == 30
        assert project.latest_build_id is None
        assert project.created_at == project.updated_at

        assert await ctx.database.has_collection(builds_collection_id(project.id))
        assert await ctx.database.has_collection(labels_collection_id(project.id))
        assert await ctx.storage.has_container(project_container_id(project.id))

    @pytest.mark.asyncio
    async def test_create_adds_default_branch_label(self, ctx):
        await ProjectService(ctx).create(project_data(github_default_branch="Develop"))

        label = await LabelService(ctx, "design-system").get("develop")
        assert label.type == LabelType.BRANCH
        assert label.value == "Develop"

    @pytest.mark.asyncio
    async def test_omitted_fields_use_configured_defaults(self, ctx):
        settings = ctx.settings.model_copy(
            update={"default_github_branch": "develop", "default_purge_after_days": 14}
        )
        ctx = dataclasses.replace(ctx, settings=settings)

        project = await ProjectService(ctx).create(project_data())

        assert project.github_default_branch == "develop"
        assert project.purge_after_days == 14
        assert await LabelService(ctx, project.id).has("develop")
        assert not await LabelService(ctx, project.id).has("main")

    @pytest.mark.asyncio
    async def test_explicit_fields_override_configured_defaults(self, ctx):
        settings = ctx.settings.model_copy(update={"default_github_branch": "develop"})
        ctx = dataclasses.replace(ctx, settings=settings)

        project = await ProjectService(ctx).create(
            project_data(github_default_branch="trunk", purge_after_days=7)
        )

        assert project.github_default_branch == "trunk"
        assert project.purge_after_days == 7

    @pytest.mark.asyncio
    async def test_create_duplicate_fails(self, ctx):
        service = ProjectService(ctx)
        await service.create(project_data())

        with pytest.raises(AlreadyExistsError) as exc_info:
            await service.create(project_data(name="Other"))
        assert exc_info.value.status_code == 409
        assert (await service.get("design-system")).name == "Design System"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"github_repository": "not-a-repo"},
            {"github_repository": "a/b/c"},
            {"id": "Not Valid"},
            {"id": "-leading-hyphen"},
            {"purge_after_days": 0},
            {"unknown": "field"},
        ],
    )
    async def test_invalid_input_rejected_before_any_write(self, ctx, overrides):
        with pytest.raises(ValidationError):
            await ProjectService(ctx).create(project_data(**overrides))

        assert not await ctx.database.has_collection(PROJECTS_COLLECTION)
        assert await ctx.storage.list_containers() == []


class TestProjectRead:
    """Test cases for get, has and list."""

    @pytest.mark.asyncio
    async def test_empty_registry(self, ctx):
        service = ProjectService(ctx)
        assert await service.list() == []
        assert not await service.has("storybook")
        with pytest.raises(NotFoundError):
            await service.get("storybook")

    @pytest.mark.asyncio
    async def test_list(self, ctx, project):
        service = ProjectService(ctx)
        await service.create(project_data())

        assert sorted(p.id for p in await service.list()) == ["design-system", "storybook"]
        assert await service.has("storybook")

    @pytest.mark.asyncio
    async def test_list_on_unready_store_is_backend_unavailable(self, ctx, tmp_path):
        database = SQLDocumentStore(f"sqlite:///{tmp_path}/never-initialised.db")
        ctx = dataclasses.replace(ctx, database=database)

        with pytest.raises(BackendUnavailableError) as exc_info:
            await ProjectService(ctx).list()
        assert exc_info.value.status_code == 500


class TestProjectUpdate:
    """Test cases for partial updates."""

    @pytest.mark.asyncio
    async def test_partial_update(self, ctx, project):
        updated = await ProjectService(ctx).update(
            project.id, {"name": "Renamed", "jira_domain": "https://acme.atlassian.net"}
        )

        assert updated.name == "Renamed"
        assert updated.jira_domain == "https://acme.atlassian.net"
        assert updated.github_repository == project.github_repository
        assert updated.created_at == project.created_at
        assert updated.updated_at >= project.updated_at

    @pytest.mark.asyncio
    async def test_id_cannot_change(self, ctx, project):
        with pytest.raises(ValidationError):
            await ProjectService(ctx).update(project.id, {"id": "other"})

    @pytest.mark.asyncio
    async def test_nullable_field_can_be_cleared(self, ctx, project):
        service = ProjectService(ctx)
        await service.update(project.id, {"github_path": "packages/ui"})
        cleared = await service.update(project.id, {"github_path": None})
        assert cleared.github_path is None

    @pytest.mark.asyncio
    async def test_changing_default_branch_creates_label(self, ctx, project):
        await ProjectService(ctx).update(project.id, {"github_default_branch": "trunk"})

        label = await LabelService(ctx, project.id).get("trunk")
        assert label.type == LabelType.BRANCH

    @pytest.mark.asyncio
    async def test_update_missing(self, ctx):
        with pytest.raises(NotFoundError):
            await ProjectService(ctx).update("nope", {"name": "x"})


class TestProjectDelete:
    """Test cases for project deletion."""

    @pytest.mark.asyncio
    async def test_delete_removes_everything(self, ctx, project):
        await ProjectService(ctx).delete(project.id)

        assert not await ProjectService(ctx).has(project.id)
        assert not await ctx.database.has_collection(builds_collection_id(project.id))
        assert not await ctx.database.has_collection(labels_collection_id(project.id))
        assert not await ctx.storage.has_container(project_container_id(project.id))

    @pytest.mark.asyncio
    async def test_delete_missing(self, ctx):
        with pytest.raises(NotFoundError):
            await ProjectService(ctx).delete("nope")

    @pytest.mark.asyncio
    async def test_delete_retry_after_partial_cleanup(self, ctx, project):
        await ctx.database.delete_collection(builds_collection_id(project.id))
        await ctx.storage.delete_container(project_container_id(project.id))

        await ProjectService(ctx).delete(project.id)

        assert not await ProjectService(ctx).has(project.id)
        assert not await ctx.database.has_collection(labels_collection_id(project.id))
