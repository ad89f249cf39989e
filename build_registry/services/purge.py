"""
Purge sweep: delete builds older than each project's retention window.

Per project:
1. cutoff = now - purge_after_days
2. Delete every build created before the cutoff, except the project's
   latest build, through BuildService.delete (full cascade)
3. Delete the labels only purged builds carried (never the default branch)

A failing build, label or project never stops the sweep; everything lands
in the PurgeReport.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..context import RequestContext
from ..errors import OperationCancelledError
from ..primitives import parse_timestamp, utc_now
from ..schemas import Project
from ..slugs import slugify
from ..storage.base import ListOptions
from .base import BaseService
from .batch import BatchResult, ItemFailure, gather_settled
from .builds import BuildService
from .labels import LabelService
from .projects import ProjectService


@dataclass
class ProjectPurgeResult:
    """Outcome of purging one project."""

    project_id: str
    cutoff: Optional[datetime] = None
    builds: BatchResult = field(default_factory=BatchResult)
    labels: BatchResult = field(default_factory=BatchResult)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.builds.ok and self.labels.ok

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "cutoff": self.cutoff.isoformat() if self.cutoff else None,
            "builds": self.builds.to_dict(),
            "labels": self.labels.to_dict(),
            "error": self.error,
        }


@dataclass
class PurgeReport:
    """Aggregated outcome of a purge sweep."""

    projects: List[ProjectPurgeResult] = field(default_factory=list)

    @property
    def builds_deleted(self) -> int:
        return sum(len(result.builds.succeeded) for result in self.projects)

    @property
    def labels_deleted(self) -> int:
        return sum(len(result.labels.succeeded) for result in self.projects)

    @property
    def failures(self) -> List[ItemFailure]:
        failures = []
        for result in self.projects:
            for failure in (*result.builds.failed, *result.labels.failed):
                failures.append(
                    ItemFailure(f"{result.project_id}/{failure.item_id}", failure.error)
                )
        return failures

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.projects)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "builds_deleted": self.builds_deleted,
            "labels_deleted": self.labels_deleted,
            "projects": [result.to_dict() for result in self.projects],
        }


class PurgeService(BaseService):
    """Runs the purge sweep over one or all projects."""

    kind = "project"

    def __init__(self, ctx: RequestContext):
        super().__init__(ctx)

    async def purge(
        self, project_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> PurgeReport:
        """Purge expired builds.

        Args:
            project_id: Only purge this project (all projects when None)
            now: Reference time, defaults to the current UTC time

        Raises:
            NotFoundError: If ``project_id`` is given and does not exist
        """
        now = now or utc_now()
        projects_service = ProjectService(self.ctx)
        if project_id is not None:
            projects = [await projects_service.get(project_id)]
        else:
            projects = await projects_service.list()

        self.logger.info("purge_started", projects=len(projects))
        report = PurgeReport()
        for project in projects:
            try:
                result = await self.purge_project(project, now)
            except OperationCancelledError:
                raise
            except Exception as e:
                self.logger.error("project_purge_failed", project_id=project.id, error=str(e))
                result = ProjectPurgeResult(project_id=project.id, error=str(e))
            report.projects.append(result)

        self.logger.info(
            "purge_finished",
            builds_deleted=report.builds_deleted,
            labels_deleted=report.labels_deleted,
            failures=len(report.failures),
        )
        return report

    async def purge_project(self, project: Project, now: datetime) -> ProjectPurgeResult:
        """Purge one project."""
        builds = BuildService(self.ctx, project.id)
        labels = LabelService(self.ctx, project.id)
        cutoff = now - timedelta(days=project.purge_after_days)
        log = self.logger.bind(project_id=project.id, cutoff=cutoff.isoformat())

        def _expired(document) -> bool:
            return (
                document["id"] != project.latest_build_id
                and parse_timestamp(document["created_at"]) < cutoff
            )

        expired = await builds.list(ListOptions(filter=_expired))
        result = ProjectPurgeResult(project_id=project.id, cutoff=cutoff)
        if not expired:
            log.info("project_purge_nothing_expired")
            return result

        result.builds = await gather_settled(
            expired,
            lambda build: builds.delete(build.id),
            limit=self.ctx.settings.purge_concurrency,
            key=lambda build: build.id,
        )

        touched = {slug for build in expired for slug in build.label_slugs}
        with self._translate(project.id):
            remaining = await self.database.list_documents(
                builds.collection_id, ListOptions(select=["label_slugs"])
            )
        carried = {slug for doc in remaining for slug in doc.get("label_slugs") or []}
        existing = {label.slug for label in await labels.list()}
        orphaned = sorted(
            (touched & existing) - carried - {slugify(project.github_default_branch)}
        )
        result.labels = await gather_settled(
            orphaned, labels.delete, limit=self.ctx.settings.purge_concurrency
        )

        log.info(
            "project_purged",
            builds_deleted=len(result.builds.succeeded),
            labels_deleted=len(result.labels.succeeded),
            failures=result.builds.failure_count + result.labels.failure_count,
        )
        return result
