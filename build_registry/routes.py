"""
REST endpoints for projects, labels, builds, webhooks and purge.

Handlers stay thin: they build a service from the request's context and
return its result. Domain errors are mapped to responses by the handler
registered in :mod:`build_registry.api`.
"""

import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response

from .context import RequestContext
from .enums import LabelType, UploadVariant, WebhookEvent
from .services import (
    BuildService,
    LabelService,
    ProjectService,
    PurgeService,
    WebhookService,
)

router = APIRouter()


def get_context(request: Request) -> RequestContext:
    """Build the RequestContext of one HTTP request."""
    state = request.app.state
    return RequestContext(
        database=state.database,
        storage=state.storage,
        user=request.headers.get("x-registry-user"),
        request_id=request.headers.get("x-request-id") or uuid.uuid4().hex,
        settings=state.settings,
        http_transport=getattr(state, "http_transport", None),
    )


# =============================================================================
# Project Endpoints
# =============================================================================


@router.get("/projects", tags=["projects"])
async def list_projects(ctx: RequestContext = Depends(get_context)) -> List[Dict[str, Any]]:
    """List all projects."""
    projects = await ProjectService(ctx).list()
    return [project.model_dump(mode="json") for project in projects]


@router.post("/projects", status_code=201, tags=["projects"])
async def create_project(
    payload: Dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(get_context),
) -> Dict[str, Any]:
    """Create a project and provision its storage."""
    project = await ProjectService(ctx).create(payload)
    return project.model_dump(mode="json")


@router.get("/projects/{project_id}", tags=["projects"])
async def get_project(
    project_id: str, ctx: RequestContext = Depends(get_context)
) -> Dict[str, Any]:
    """Get a project by ID."""
    project = await ProjectService(ctx).get(project_id)
    return project.model_dump(mode="json")


@router.patch("/projects/{project_id}", tags=["projects"])
async def update_project(
    project_id: str,
    payload: Dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(get_context),
) -> Dict[str, Any]:
    """Update a project."""
    project = await ProjectService(ctx).update(project_id, payload)
    return project.model_dump(mode="json")


@router.delete("/projects/{project_id}", status_code=204, tags=["projects"])
async def delete_project(project_id: str, ctx: RequestContext = Depends(get_context)) -> Response:
    """Delete a project with all its builds, labels and files."""
    await ProjectService(ctx).delete(project_id)
    return Response(status_code=204)


@router.post("/projects/{project_id}/purge", tags=["purge"])
async def purge_project(project_id: str, ctx: RequestContext = Depends(get_context)) -> Dict[str, Any]:
    """Purge expired builds of one project."""
    report = await PurgeService(ctx).purge(project_id)
    return report.to_dict()


@router.post("/purge", tags=["purge"])
async def purge_all(ctx: RequestContext = Depends(get_context)) -> Dict[str, Any]:
    """Purge expired builds of every project."""
    report = await PurgeService(ctx).purge()
    return report.to_dict()


# =============================================================================
# Label Endpoints
# =============================================================================


@router.get("/projects/{project_id}/labels", tags=["labels"])
async def list_labels(
    project_id: str,
    type: Optional[LabelType] = Query(None, description="Only labels of this type"),
    ctx: RequestContext = Depends(get_context),
) -> List[Dict[str, Any]]:
    """List the labels of a project."""
    labels = await LabelService(ctx, project_id).list(label_type=type)
    return [label.model_dump(mode="json") for label in labels]


@router.post("/projects/{project_id}/labels", status_code=201, tags=["labels"])
async def create_label(
    project_id: str,
    payload: Dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(get_context),
) -> Dict[str, Any]:
    """Create a label."""
    label = await LabelService(ctx, project_id).create(payload)
    return label.model_dump(mode="json")


@router.get("/projects/{project_id}/labels/{slug}", tags=["labels"])
async def get_label(
    project_id: str, slug: str, ctx: RequestContext = Depends(get_context)
) -> Dict[str, Any]:
    """Get a label by slug."""
    label = await LabelService(ctx, project_id).get(slug)
    return label.model_dump(mode="json")


@router.patch("/projects/{project_id}/labels/{slug}", tags=["labels"])
async def update_label(
    project_id: str,
    slug: str,
    payload: Dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(get_context),
) -> Dict[str, Any]:
    """Update a label."""
    label = await LabelService(ctx, project_id).update(slug, payload)
    return label.model_dump(mode="json")


@router.delete("/projects/{project_id}/labels/{slug}", tags=["labels"])
async def delete_label(
    project_id: str, slug: str, ctx: RequestContext = Depends(get_context)
) -> Dict[str, Any]:
    """Delete a label and the builds carrying only that label."""
    result = await LabelService(ctx, project_id).delete(slug)
    return {"status": "success", "cascade": result.to_dict()}


@router.get("/projects/{project_id}/labels/{slug}/builds", tags=["labels"])
async def list_label_builds(
    project_id: str, slug: str, ctx: RequestContext = Depends(get_context)
) -> List[Dict[str, Any]]:
    """List the builds carrying a label."""
    await LabelService(ctx, project_id).get(slug)
    builds = await BuildService(ctx, project_id).list_by_label(slug)
    return [build.model_dump(mode="json") for build in builds]


# =============================================================================
# Build Endpoints
# =============================================================================


@router.get("/projects/{project_id}/builds", tags=["builds"])
async def list_builds(
    project_id: str, ctx: RequestContext = Depends(get_context)
) -> List[Dict[str, Any]]:
    """List the builds of a project, newest first."""
    builds = await BuildService(ctx, project_id).list()
    return [build.model_dump(mode="json") for build in builds]


@router.post("/projects/{project_id}/builds", status_code=201, tags=["builds"])
async def create_build(
    project_id: str,
    payload: Dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(get_context),
) -> Dict[str, Any]:
    """Create a build and link it to its labels."""
    build = await BuildService(ctx, project_id).create(payload)
    return build.model_dump(mode="json")


@router.get("/projects/{project_id}/builds/{build_id}", tags=["builds"])
async def get_build(
    project_id: str, build_id: str, ctx: RequestContext = Depends(get_context)
) -> Dict[str, Any]:
    """Get a build by ID."""
    build = await BuildService(ctx, project_id).get(build_id)
    return build.model_dump(mode="json")


@router.patch("/projects/{project_id}/builds/{build_id}", tags=["builds"])
async def update_build(
    project_id: str,
    build_id: str,
    payload: Dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(get_context),
) -> Dict[str, Any]:
    """Update a build."""
    build = await BuildService(ctx, project_id).update(build_id, payload)
    return build.model_dump(mode="json")


@router.delete("/projects/{project_id}/builds/{build_id}", tags=["builds"])
async def delete_build(
    project_id: str, build_id: str, ctx: RequestContext = Depends(get_context)
) -> Dict[str, Any]:
    """Delete a build and its files."""
    result = await BuildService(ctx, project_id).delete(build_id)
    return {"status": "success", "cleanup": result.to_dict()}


@router.put("/projects/{project_id}/builds/{build_id}/artifacts/{variant}", tags=["builds"])
async def upload_artifact(
    project_id: str,
    build_id: str,
    variant: UploadVariant,
    request: Request,
    ctx: RequestContext = Depends(get_context),
) -> Dict[str, Any]:
    """Upload a zipped artifact; the request body is the archive."""
    content = await request.body()
    build = await BuildService(ctx, project_id).upload(build_id, content, variant)
    return build.model_dump(mode="json")


@router.get("/projects/{project_id}/builds/{build_id}/stories", tags=["builds"])
async def list_build_stories(
    project_id: str, build_id: str, ctx: RequestContext = Depends(get_context)
) -> Dict[str, Any]:
    """List the stories of a build's Storybook."""
    stories = await BuildService(ctx, project_id).list_stories(build_id)
    return {
        "ready": stories is not None,
        "stories": [story.model_dump(mode="json", by_alias=True) for story in stories or []],
    }


@router.get("/projects/{project_id}/builds/{build_id}/files/{path:path}", tags=["builds"])
async def get_build_file(
    project_id: str,
    build_id: str,
    path: str,
    ctx: RequestContext = Depends(get_context),
) -> Response:
    """Serve one artifact file of a build."""
    stored = await BuildService(ctx, project_id).get_file(build_id, path)
    return Response(content=stored.content, media_type=stored.mime_type)


# =============================================================================
# Webhook Endpoints
# =============================================================================


def _public_webhook(webhook) -> Dict[str, Any]:
    data = webhook.model_dump(mode="json", exclude={"secret"})
    data["has_secret"] = webhook.secret is not None
    return data


@router.get("/projects/{project_id}/webhooks", tags=["webhooks"])
async def list_webhooks(
    project_id: str,
    event: Optional[WebhookEvent] = Query(None, description="Only webhooks for this event"),
    ctx: RequestContext = Depends(get_context),
) -> List[Dict[str, Any]]:
    """List the webhooks of a project."""
    webhooks = await WebhookService(ctx, project_id).list(event=event)
    return [_public_webhook(webhook) for webhook in webhooks]


@router.post("/projects/{project_id}/webhooks", status_code=201, tags=["webhooks"])
async def create_webhook(
    project_id: str,
    payload: Dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(get_context),
) -> Dict[str, Any]:
    """Register a webhook."""
    webhook = await WebhookService(ctx, project_id).create(payload)
    return _public_webhook(webhook)


@router.get("/projects/{project_id}/webhooks/{webhook_id}", tags=["webhooks"])
async def get_webhook(
    project_id: str, webhook_id: str, ctx: RequestContext = Depends(get_context)
) -> Dict[str, Any]:
    """Get a webhook by ID."""
    webhook = await WebhookService(ctx, project_id).get(webhook_id)
    return _public_webhook(webhook)


@router.patch("/projects/{project_id}/webhooks/{webhook_id}", tags=["webhooks"])
async def update_webhook(
    project_id: str,
    webhook_id: str,
    payload: Dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(get_context),
) -> Dict[str, Any]:
    """Update a webhook."""
    webhook = await WebhookService(ctx, project_id).update(webhook_id, payload)
    return _public_webhook(webhook)


@router.delete("/projects/{project_id}/webhooks/{webhook_id}", status_code=204, tags=["webhooks"])
async def delete_webhook(
    project_id: str, webhook_id: str, ctx: RequestContext = Depends(get_context)
) -> Response:
    """Delete a webhook."""
    await WebhookService(ctx, project_id).delete(webhook_id)
    return Response(status_code=204)


@router.post("/projects/{project_id}/webhooks/{webhook_id}/test", tags=["webhooks"])
async def send_test_webhook(
    project_id: str,
    webhook_id: str,
    event: WebhookEvent = Query(WebhookEvent.PROJECT_UPDATED, description="Event to send"),
    ctx: RequestContext = Depends(get_context),
) -> Dict[str, Any]:
    """Send the project's current state to one webhook and report the outcome."""
    project = await ProjectService(ctx).get(project_id)
    service = WebhookService(ctx, project_id)
    webhook = await service.get(webhook_id)
    delivery = await service.deliver(event, webhook, project.model_dump(mode="json"))
    return delivery.to_dict()
