"""
Label service.

Labels are keyed by slug within a project. The label of the project's
default branch is protected; deleting any other label cascades to the
builds that carry it.
"""

from __future__ import annotations

import dataclasses
from typing import Any, List, Mapping, Optional, Union

from ..context import RequestContext
from ..enums import LabelType, WebhookEvent
from ..errors import NotFoundError, ProtectedError, ValidationError
from ..primitives import labels_collection_id, utc_now
from ..schemas import Label, LabelCreate, LabelUpdate
from ..slugs import infer_label_type
from ..slugs import slugify as _slugify
from ..storage.base import Document, ListOptions
from .base import BaseService, dump_document, parse_input
from .batch import BatchResult


class LabelService(BaseService):
    """Service for managing the labels of one project."""

    kind = "label"

    def __init__(self, ctx: RequestContext, project_id: str):
        super().__init__(ctx, project_id)
        self.collection_id = labels_collection_id(project_id)

    @staticmethod
    def slugify(value: str) -> str:
        return _slugify(value)

    @staticmethod
    def infer_type(slug: str) -> LabelType:
        return infer_label_type(slug)

    async def list(
        self,
        options: Optional[ListOptions] = None,
        *,
        label_type: Optional[LabelType] = None,
    ) -> List[Label]:
        """List labels, optionally only those of one type."""
        if label_type is not None:
            options = _with_type_filter(options or ListOptions(), LabelType(label_type))
        with self._translate():
            documents = await self.database.list_documents(self.collection_id, options)
        return [Label.model_validate(doc) for doc in documents]

    async def create(
        self,
        data: Union[LabelCreate, Mapping[str, Any]],
        *,
        slug: Optional[str] = None,
    ) -> Label:
        """Create a label.

        Args:
            data: Label fields; the slug is derived from ``value``
            slug: Use this slug instead of deriving one (build label references)

        Raises:
            ValidationError: If the value yields an empty slug
            AlreadyExistsError: If the slug is taken
        """
        payload = parse_input(LabelCreate, data)
        slug = slug or self.slugify(payload.value)
        if not slug.strip("-"):
            raise ValidationError(f"Label value '{payload.value}' does not yield a usable slug.")

        now = utc_now()
        label = Label(
            id=slug,
            slug=slug,
            value=payload.value,
            type=payload.type or self.infer_type(slug),
            latest_build_id=payload.latest_build_id,
            created_at=now,
            updated_at=now,
        )
        with self._translate(slug):
            await self.database.create_document(self.collection_id, dump_document(label))

        self.logger.info("label_created", slug=slug, type=label.type.value)
        await self._notify(WebhookEvent.LABEL_CREATED, label)
        return label

    async def get(self, slug: str) -> Label:
        with self._translate(slug):
            document = await self.database.get_document(self.collection_id, slug)
        return Label.model_validate(document)

    async def has(self, slug: str) -> bool:
        try:
            with self._translate(slug):
                return await self.database.has_document(self.collection_id, slug)
        except NotFoundError:
            return False

    async def update(self, slug: str, data: Union[LabelUpdate, Mapping[str, Any]]) -> Label:
        """Merge a partial update into a label. ``latest_build_id`` may be reset to None."""
        payload = parse_input(LabelUpdate, data)
        patch: Document = {
            key: value
            for key, value in payload.model_dump(mode="json", exclude_unset=True).items()
            if value is not None or key == "latest_build_id"
        }
        patch["updated_at"] = utc_now().isoformat()
        with self._translate(slug):
            document = await self.database.update_document(self.collection_id, slug, patch)
        label = Label.model_validate(document)
        await self._notify(WebhookEvent.LABEL_UPDATED, label)
        return label

    async def delete(self, slug: str) -> BatchResult:
        """Delete a label and the builds that depend on it.

        Builds carrying only this label are deleted; builds carrying other
        labels too just lose this one. Failures in that cascade are reported
        in the returned BatchResult.

        Raises:
            NotFoundError: If the project or label does not exist
            ProtectedError: If the label belongs to the default branch
        """
        from .builds import BuildService
        from .projects import ProjectService

        project = await ProjectService(self.ctx).get(self.project_id)
        if slug == self.slugify(project.github_default_branch):
            self.logger.warning("label_delete_refused", slug=slug)
            raise ProtectedError(
                f"Cannot delete the label associated with default branch "
                f"({project.github_default_branch}) of the project '{self.project_id}'."
            )

        label = await self.get(slug)
        with self._translate(slug):
            await self.database.delete_document(self.collection_id, slug)
        self.logger.info("label_deleted", slug=slug)
        await self._notify(WebhookEvent.LABEL_DELETED, label)

        result = await BuildService(self.ctx, self.project_id).delete_by_label(slug)
        if not result.ok:
            self.logger.warning(
                "label_cascade_incomplete",
                slug=slug,
                failed=[failure.item_id for failure in result.failed],
            )
        return result


def _with_type_filter(options: ListOptions, label_type: LabelType) -> ListOptions:
    base = options.filter

    def _predicate(document: Document) -> bool:
        if document.get("type") != label_type.value:
            return False
        if base is None:
            return True
        if callable(base):
            return bool(base(document))
        return all(document.get(key) == value for key, value in base.items())

    return dataclasses.replace(options, filter=_predicate)
