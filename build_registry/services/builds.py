"""
Build service.

Create flow:
1. Validate input and parse label references (no store call yet)
2. Write the build document; "already exists" is the race guard
3. Link every label concurrently (update, or create when missing)
4. Point the project at the build when it carries the default-branch label

Steps 3 and 4 are best-effort: failures are logged, never raised.

Delete flow:
1. Load, delete the document, delete the blob files under ``<build>/``
2. Clear label and project backreferences concurrently, settle-all
"""

from __future__ import annotations

import asyncio
import dataclasses
import io
import json
import mimetypes
import posixpath
import zipfile
from typing import Any, List, Mapping, Optional, Tuple, Union

from ..context import RequestContext
from ..enums import ArtifactStatus, UploadVariant, WebhookEvent
from ..errors import (
    AlreadyExistsError,
    NotFoundError,
    OperationCancelledError,
    RegistryError,
    UploadError,
    ValidationError,
)
from ..primitives import builds_collection_id, project_container_id, utc_now
from ..schemas import Build, BuildCreate, BuildStory, BuildUpdate
from ..slugs import LabelRef, parse_label_ref, slugify
from ..storage.base import Document, ListOptions, StoredFile
from .base import BaseService, dump_document, parse_input
from .batch import BatchResult, gather_settled

STORYBOOK_INDEX = "storybook/index.json"


class BuildService(BaseService):
    """Service for managing the builds of one project."""

    kind = "build"

    def __init__(self, ctx: RequestContext, project_id: str):
        super().__init__(ctx, project_id)
        self.collection_id = builds_collection_id(project_id)
        self.container_id = project_container_id(project_id)

    async def list(self, options: Optional[ListOptions] = None) -> List[Build]:
        """List builds, newest first unless ``options.sort`` says otherwise."""
        options = options or ListOptions()
        if options.sort is None:
            options = dataclasses.replace(options, sort="latest")
        with self._translate():
            documents = await self.database.list_documents(self.collection_id, options)
        return [Build.model_validate(doc) for doc in documents]

    async def list_by_label(self, slug: str) -> List[Build]:
        return await self.list(
            ListOptions(filter=lambda doc: slug in (doc.get("label_slugs") or []))
        )

    async def create(self, data: Union[BuildCreate, Mapping[str, Any]]) -> Build:
        """Create a build and link it to its labels.

        Raises:
            ValidationError: If the input or a label reference is malformed
            NotFoundError: If the project does not exist
            AlreadyExistsError: If a build with the same id exists
        """
        from .projects import ProjectService

        payload = parse_input(BuildCreate, data)
        refs = _unique_refs(parse_label_ref(raw) for raw in payload.label_refs())
        log = self.logger.bind(build_id=payload.id)

        project = await ProjectService(self.ctx).get(self.project_id)

        now = utc_now()
        build = Build(
            id=payload.id,
            sha=payload.id,
            author_name=payload.author_name,
            author_email=payload.author_email,
            message=payload.message,
            label_slugs=[ref.slug for ref in refs],
            created_at=now,
            updated_at=now,
        )
        with self._translate(build.id):
            await self.database.create_document(self.collection_id, dump_document(build))
        log.info("build_created", label_slugs=build.label_slugs)

        linked = await gather_settled(
            refs, lambda ref: self._link_label(ref, build.id), key=lambda ref: ref.slug
        )
        for failure in linked.failed:
            log.warning("label_link_failed", slug=failure.item_id, error=failure.message)

        if slugify(project.github_default_branch) in build.label_slugs:
            try:
                await ProjectService(self.ctx).update(
                    self.project_id, {"latest_build_id": build.id}
                )
            except OperationCancelledError:
                raise
            except RegistryError as e:
                log.warning("project_backref_update_failed", error=str(e))

        await self._notify(WebhookEvent.BUILD_CREATED, build)
        return build

    async def get(self, build_id: str) -> Build:
        with self._translate(build_id):
            document = await self.database.get_document(self.collection_id, build_id)
        return Build.model_validate(document)

    async def has(self, build_id: str) -> bool:
        try:
            await self.get(build_id)
        except NotFoundError:
            return False
        return True

    async def update(self, build_id: str, data: Union[BuildUpdate, Mapping[str, Any]]) -> Build:
        """Merge a partial update into a build; untouched fields keep their value."""
        payload = parse_input(BuildUpdate, data)
        patch: Document = {
            key: value
            for key, value in payload.model_dump(mode="json", exclude_unset=True).items()
            if value is not None or key == "message"
        }
        patch["updated_at"] = utc_now().isoformat()
        with self._translate(build_id):
            document = await self.database.update_document(self.collection_id, build_id, patch)
        build = Build.model_validate(document)
        await self._notify(WebhookEvent.BUILD_UPDATED, build)
        return build

    async def delete(self, build_id: str, *, skip_label: Optional[str] = None) -> BatchResult:
        """Delete a build, its files and the backreferences pointing at it.

        Args:
            build_id: Build to delete
            skip_label: Label whose backreference is left alone (it is being deleted)

        Returns:
            BatchResult of the backreference cleanup

        Raises:
            NotFoundError: If the build does not exist
        """
        build = await self.get(build_id)
        log = self.logger.bind(build_id=build_id)

        with self._translate(build_id):
            await self.database.delete_document(self.collection_id, build_id)
        with self._translate(build_id):
            await self.storage.delete_files(self.container_id, f"{build_id}/")
        log.info("build_deleted")
        await self._notify(WebhookEvent.BUILD_DELETED, build)

        targets: List[Tuple[str, str]] = [
            ("label", slug) for slug in build.label_slugs if slug != skip_label
        ]
        targets.append(("project", self.project_id))
        result = await gather_settled(
            targets,
            lambda target: self._clear_backref(target, build_id),
            key=lambda target: f"{target[0]}:{target[1]}",
        )
        for failure in result.failed:
            log.warning("build_backref_clear_failed", target=failure.item_id, error=failure.message)
        return result

    async def delete_by_label(self, slug: str, force: bool = False) -> BatchResult:
        """Remove a label's builds.

        Builds carrying only ``slug`` (or every build, with ``force``) are
        deleted; builds with other labels just drop ``slug``.
        """
        builds = await self.list_by_label(slug)
        exclusive = [b for b in builds if force or set(b.label_slugs) <= {slug}]
        shared = [b for b in builds if not (force or set(b.label_slugs) <= {slug})]
        self.logger.info(
            "builds_delete_by_label", slug=slug, deleting=len(exclusive), untagging=len(shared)
        )

        limit = self.ctx.settings.purge_concurrency
        result = await gather_settled(
            exclusive,
            lambda build: self.delete(build.id, skip_label=slug),
            limit=limit,
            key=lambda build: build.id,
        )
        untagged = await gather_settled(
            shared,
            lambda build: self.update(
                build.id, {"label_slugs": [s for s in build.label_slugs if s != slug]}
            ),
            limit=limit,
            key=lambda build: build.id,
        )
        result.extend(untagged)
        for failure in result.failed:
            self.logger.warning(
                "build_label_cascade_failed", slug=slug, build_id=failure.item_id,
                error=failure.message,
            )
        return result

    async def upload(
        self,
        build_id: str,
        content: bytes,
        variant: Union[UploadVariant, str] = UploadVariant.STORYBOOK,
    ) -> Build:
        """Store a zipped artifact for one variant of a build.

        The archive is kept at ``<build>/<variant>.zip`` and extracted under
        ``<build>/<variant>/``. The variant's status goes uploading -> ready,
        or -> failed when anything goes wrong. Only that status field is
        written, so uploads of different variants do not clobber each other.

        Raises:
            ValidationError: If the variant is unknown or the body is empty
            NotFoundError: If the build does not exist
            UploadError: If the archive could not be unpacked or stored
        """
        try:
            variant = UploadVariant(variant)
        except ValueError as e:
            raise ValidationError(f"Unsupported upload variant: {variant}") from e
        if not content:
            raise ValidationError("The body is required for upload.")

        await self.get(build_id)
        log = self.logger.bind(build_id=build_id, variant=variant.value)
        await self._set_status(build_id, variant, ArtifactStatus.UPLOADING)

        try:
            files = await asyncio.to_thread(_extract_zip, build_id, variant, content)
            archive = StoredFile(
                path=f"{build_id}/{variant.value}.zip",
                content=content,
                mime_type="application/zip",
            )
            with self._translate(build_id):
                result = await self.storage.upload_files(self.container_id, [archive, *files])
            if not result.ok:
                raise UploadError(
                    f"{len(result.failed)} file(s) could not be stored: "
                    f"{', '.join(sorted(result.failed))}"
                )
        except OperationCancelledError:
            raise
        except Exception as e:
            log.error("build_upload_failed", error=str(e))
            await self._mark_failed(build_id, variant)
            if isinstance(e, UploadError):
                raise
            raise UploadError(f"Upload of '{variant.value}' failed: {e}") from e

        build = await self._set_status(build_id, variant, ArtifactStatus.READY)
        log.info("build_uploaded", files=len(files) + 1)
        return build

    async def list_stories(self, build_id: str) -> Optional[List[BuildStory]]:
        """Read the Storybook index of a build.

        Returns None while the storybook artifact is not ready.
        """
        build = await self.get(build_id)
        if build.storybook != ArtifactStatus.READY:
            return None

        with self._translate(build_id):
            stored = await self.storage.download_file(
                self.container_id, f"{build_id}/{STORYBOOK_INDEX}"
            )
        try:
            index = json.loads(stored.content)
        except ValueError as e:
            raise ValidationError(f"Storybook index of build '{build_id}' is not valid JSON.") from e

        if not isinstance(index, dict):
            raise ValidationError(f"Storybook index of build '{build_id}' is not a JSON object.")
        entries = index.get("entries") or index.get("stories") or {}
        if not isinstance(entries, dict):
            raise ValidationError(f"Storybook index of build '{build_id}' has malformed entries.")
        return [parse_input(BuildStory, entry) for entry in entries.values()]

    async def get_file(self, build_id: str, path: str) -> StoredFile:
        """Download one artifact file of a build.

        Raises:
            ValidationError: If the path leaves the build's directory
            NotFoundError: If the file does not exist
        """
        if any(part in ("", "..") for part in path.strip("/").split("/")):
            raise ValidationError(f"Invalid file path '{path}'.")
        with self._translate(build_id):
            return await self.storage.download_file(
                self.container_id, f"{build_id}/{path.strip('/')}"
            )

    async def _set_status(
        self, build_id: str, variant: UploadVariant, status: ArtifactStatus
    ) -> Build:
        return await self.update(build_id, {variant.field: status})

    async def _mark_failed(self, build_id: str, variant: UploadVariant) -> None:
        try:
            await self._set_status(build_id, variant, ArtifactStatus.FAILED)
        except RegistryError as e:
            self.logger.error(
                "build_status_update_failed",
                build_id=build_id,
                variant=variant.value,
                error=str(e),
            )

    async def _link_label(self, ref: LabelRef, build_id: str) -> None:
        """Point an existing label at the build, or create it."""
        from .labels import LabelService

        labels = LabelService(self.ctx, self.project_id)
        try:
            await labels.update(ref.slug, {"latest_build_id": build_id})
            return
        except NotFoundError:
            pass

        label_type = ref.type or labels.infer_type(ref.slug)
        self.logger.info("label_auto_create", slug=ref.slug, type=label_type.value)
        try:
            await labels.create(
                {"value": ref.value, "type": label_type, "latest_build_id": build_id},
                slug=ref.slug,
            )
        except AlreadyExistsError:
            # Another build created it in the meantime.
            await labels.update(ref.slug, {"latest_build_id": build_id})

    async def _clear_backref(self, target: Tuple[str, str], build_id: str) -> None:
        from .labels import LabelService
        from .projects import ProjectService

        kind, entity_id = target
        try:
            if kind == "label":
                labels = LabelService(self.ctx, self.project_id)
                label = await labels.get(entity_id)
                if label.latest_build_id == build_id:
                    await labels.update(entity_id, {"latest_build_id": None})
            else:
                projects = ProjectService(self.ctx)
                project = await projects.get(entity_id)
                if project.latest_build_id == build_id:
                    await projects.update(entity_id, {"latest_build_id": None})
        except NotFoundError:
            # Nothing left to point at the build.
            pass


def _unique_refs(refs) -> List[LabelRef]:
    seen = {}
    for ref in refs:
        seen.setdefault(ref.slug, ref)
    return list(seen.values())


def _extract_zip(build_id: str, variant: UploadVariant, content: bytes) -> List[StoredFile]:
    files = []
    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            name = _entry_name(info.filename)
            mime_type, _ = mimetypes.guess_type(name)
            files.append(
                StoredFile(
                    path=f"{build_id}/{variant.value}/{name}",
                    content=archive.read(info),
                    mime_type=mime_type or "application/octet-stream",
                )
            )
    return files


def _entry_name(filename: str) -> str:
    """Archive member name as a path relative to the variant directory."""
    name = filename.replace("\\", "/")
    if name.startswith("/") or ".." in name.split("/"):
        raise UploadError(f"Archive entry '{filename}' escapes the upload directory.")
    name = posixpath.normpath(name)
    if name in ("", "."):
        raise UploadError(f"Archive entry '{filename}' has no usable name.")
    return name
