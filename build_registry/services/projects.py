"""
Project service.

A project owns three document collections (builds, labels, webhooks) and one blob
container. Creation provisions them before the project record is written,
deletion removes them before the record is deleted, so a half-finished
operation can always be retried.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Union

from ..context import RequestContext
from ..enums import LabelType, WebhookEvent
from ..errors import AlreadyExistsError, NotFoundError, OperationCancelledError, RegistryError
from ..primitives import (
    PROJECTS_COLLECTION,
    builds_collection_id,
    labels_collection_id,
    project_container_id,
    utc_now,
    webhooks_collection_id,
)
from ..schemas import Project, ProjectCreate, ProjectUpdate, Webhook
from ..slugs import slugify
from ..storage.base import ListOptions
from ..storage.errors import (
    CollectionAlreadyExistsError,
    CollectionNotFoundError,
    ContainerNotFoundError,
)
from .base import BaseService, dump_document, parse_input

# Fields a partial update may explicitly reset to null.
NULLABLE_FIELDS = {"github_path", "jira_domain", "latest_build_id"}


class ProjectService(BaseService):
    """Service for managing projects."""

    kind = "project"
    collection_id = PROJECTS_COLLECTION

    def __init__(self, ctx: RequestContext):
        super().__init__(ctx)

    def _missing_collection(self, entity_id: Optional[str]) -> RegistryError:
        return NotFoundError("project", entity_id or "")

    async def _ensure_collection(self, collection_id: str) -> None:
        with self._translate():
            try:
                await self.database.create_collection(collection_id)
            except CollectionAlreadyExistsError:
                pass

    async def list(self, options: Optional[ListOptions] = None) -> List[Project]:
        """List projects. A fresh registry has no projects collection yet."""
        with self._translate():
            if not await self.database.has_collection(self.collection_id):
                return []
            documents = await self.database.list_documents(self.collection_id, options)
        return [Project.model_validate(doc) for doc in documents]

    async def create(self, data: Union[ProjectCreate, Mapping[str, Any]]) -> Project:
        """Create a project and provision its collections and container.

        Raises:
            ValidationError: If the input is malformed
            AlreadyExistsError: If a project with the same id exists
        """
        payload = parse_input(ProjectCreate, data)
        log = self.logger.bind(project_id=payload.id)

        if await self.has(payload.id):
            raise AlreadyExistsError("project", payload.id)

        await self._ensure_collection(self.collection_id)
        await self._ensure_collection(builds_collection_id(payload.id))
        await self._ensure_collection(labels_collection_id(payload.id))
        await self._ensure_collection(webhooks_collection_id(payload.id))
        with self._translate(payload.id):
            await self.storage.create_container(project_container_id(payload.id))

        settings = self.ctx.settings
        fields = payload.model_dump()
        fields["github_default_branch"] = (
            payload.github_default_branch or settings.default_github_branch
        )
        if payload.purge_after_days is None:
            fields["purge_after_days"] = settings.default_purge_after_days

        await self._create_default_label(payload.id, fields["github_default_branch"])

        now = utc_now()
        project = Project(**fields, created_at=now, updated_at=now)
        with self._translate(payload.id):
            await self.database.create_document(self.collection_id, dump_document(project))

        log.info("project_created", github_repository=project.github_repository)
        await self._notify(WebhookEvent.PROJECT_CREATED, project, project_id=project.id)
        return project

    async def get(self, project_id: str) -> Project:
        """Get a project by id.

        Raises:
            NotFoundError: If the project does not exist
        """
        with self._translate(project_id):
            document = await self.database.get_document(self.collection_id, project_id)
        return Project.model_validate(document)

    async def has(self, project_id: str) -> bool:
        try:
            await self.get(project_id)
        except NotFoundError:
            return False
        return True

    async def update(
        self, project_id: str, data: Union[ProjectUpdate, Mapping[str, Any]]
    ) -> Project:
        """Merge a partial update into a project.

        Changing the default branch also creates that branch's label;
        failing to do so is logged, not raised.
        """
        payload = parse_input(ProjectUpdate, data)
        patch = {
            key: value
            for key, value in payload.model_dump(mode="json", exclude_unset=True).items()
            if value is not None or key in NULLABLE_FIELDS
        }
        current = await self.get(project_id)

        patch["updated_at"] = utc_now().isoformat()
        with self._translate(project_id):
            document = await self.database.update_document(self.collection_id, project_id, patch)
        project = Project.model_validate(document)

        new_branch = patch.get("github_default_branch")
        if new_branch and slugify(new_branch) != slugify(current.github_default_branch):
            try:
                await self._create_default_label(project_id, new_branch)
            except OperationCancelledError:
                raise
            except RegistryError as e:
                self.logger.warning(
                    "default_label_create_failed",
                    project_id=project_id,
                    branch=new_branch,
                    error=str(e),
                )

        self.logger.info("project_updated", project_id=project_id, fields=sorted(patch))
        await self._notify(WebhookEvent.PROJECT_UPDATED, project, project_id=project_id)
        return project

    async def delete(self, project_id: str) -> None:
        """Delete a project with all its builds, labels and artifacts.

        The project record goes last: if cleanup fails the record stays and
        the delete can be retried.
        """
        project = await self.get(project_id)
        log = self.logger.bind(project_id=project_id)
        webhooks = await self._load_webhooks(project_id)

        for collection_id in (
            builds_collection_id(project_id),
            labels_collection_id(project_id),
            webhooks_collection_id(project_id),
        ):
            with self._translate(project_id):
                try:
                    await self.database.delete_collection(collection_id)
                except CollectionNotFoundError:
                    log.info("project_collection_already_gone", collection_id=collection_id)

        with self._translate(project_id):
            try:
                await self.storage.delete_container(project_container_id(project_id))
            except ContainerNotFoundError:
                log.info("project_container_already_gone")

        with self._translate(project_id):
            await self.database.delete_document(self.collection_id, project_id)

        log.info("project_deleted")
        await self._notify(
            WebhookEvent.PROJECT_DELETED, project, project_id=project_id, webhooks=webhooks
        )

    async def _create_default_label(self, project_id: str, branch: str) -> None:
        from .labels import LabelService

        labels = LabelService(self.ctx, project_id)
        try:
            await labels.create({"value": branch, "type": LabelType.BRANCH})
        except AlreadyExistsError:
            pass

    async def _load_webhooks(self, project_id: str) -> List[Webhook]:
        from .webhooks import WebhookService

        try:
            return await WebhookService(self.ctx, project_id).list()
        except NotFoundError:
            return []
