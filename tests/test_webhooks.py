"""Tests for webhook management and event delivery."""

import dataclasses
import hashlib
import hmac
import json

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from structlog.testing import capture_logs

from build_registry.api import create_app
from build_registry.enums import WebhookEvent
from build_registry.errors import NotFoundError, ValidationError
from build_registry.primitives import webhooks_collection_id
from build_registry.services import (
    BuildService,
    LabelService,
    ProjectService,
    WebhookService,
)

HOOK_URL = "https://hooks.example.com/registry"


class Endpoint:
    """Records the requests a webhook receiver would get."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)

    @property
    def events(self) -> list:
        return [request.headers["x-webhook-event"] for request in self.requests]

    def bodies(self) -> list:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def endpoint() -> Endpoint:
    return Endpoint()


@pytest_asyncio.fixture
async def hooked(ctx, project, endpoint):
    """Request context whose outgoing calls land in ``endpoint``."""
    return dataclasses.replace(ctx, http_transport=httpx.MockTransport(endpoint))


class TestWebhookCrud:
    """Test cases for creating, reading, updating and deleting webhooks."""

    @pytest.mark.asyncio
    async def test_create_get_update_delete(self, hooked, project):
        webhooks = WebhookService(hooked, project.id)

        created = await webhooks.create(
            {"url": HOOK_URL, "events": ["build:created"], "headers": {"x-token": "t"}}
        )
        assert created.url == HOOK_URL
        assert created.events == [WebhookEvent.BUILD_CREATED]
        assert await webhooks.has(created.id)
        assert (await webhooks.get(created.id)).headers == {"x-token": "t"}

        updated = await webhooks.update(created.id, {"events": None, "secret": "s3cret"})
        assert updated.events is None
        assert updated.secret == "s3cret"
        assert updated.url == HOOK_URL

        await webhooks.delete(created.id)
        assert not await webhooks.has(created.id)
        with pytest.raises(NotFoundError):
            await webhooks.delete(created.id)

    @pytest.mark.asyncio
    async def test_single_event_string_is_accepted(self, hooked, project):
        webhook = await WebhookService(hooked, project.id).create(
            {"url": HOOK_URL, "events": "label:deleted"}
        )
        assert webhook.events == [WebhookEvent.LABEL_DELETED]

    @pytest.mark.asyncio
    async def test_list_by_event(self, hooked, project):
        webhooks = WebhookService(hooked, project.id)
        builds_hook = await webhooks.create({"url": HOOK_URL, "events": ["build:created"]})
        catch_all = await webhooks.create({"url": HOOK_URL})
        await webhooks.create({"url": HOOK_URL, "events": ["label:created"]})

        matching = await webhooks.list(event=WebhookEvent.BUILD_CREATED)

        assert sorted(hook.id for hook in matching) == sorted([builds_hook.id, catch_all.id])
        assert len(await webhooks.list()) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data",
        [
            {"url": "not a url"},
            {"url": "ftp://hooks.example.com/x"},
            {"url": HOOK_URL, "events": ["build:exploded"]},
            {"url": HOOK_URL, "unknown": True},
        ],
    )
    async def test_invalid_input(self, hooked, project, data):
        with pytest.raises(ValidationError):
            await WebhookService(hooked, project.id).create(data)

    @pytest.mark.asyncio
    async def test_missing_project(self, hooked):
        with pytest.raises(NotFoundError):
            await WebhookService(hooked, "nope").create({"url": HOOK_URL})
        with pytest.raises(NotFoundError):
            await WebhookService(hooked, "nope").list()


class TestWebhookDispatch:
    """Test cases for notifying webhooks about registry changes."""

    @pytest.mark.asyncio
    async def test_build_create_notifies_subscribers(
        self, hooked, project, endpoint, build_payload
    ):
        await WebhookService(hooked, project.id).create(
            {"url": HOOK_URL, "events": ["build:created"]}
        )

        await BuildService(hooked, project.id).create(build_payload("b1"))

        assert endpoint.events == ["build:created"]
        [body] = endpoint.bodies()
        assert body["event"] == "build:created"
        assert body["project_id"] == project.id
        assert body["payload"]["id"] == "b1"
        request = endpoint.requests[0]
        assert str(request.url) == HOOK_URL
        assert request.headers["x-webhook-project-id"] == project.id
        assert request.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_every_entity_change_is_announced(
        self, hooked, project, endpoint, build_payload
    ):
        await WebhookService(hooked, project.id).create({"url": HOOK_URL})
        builds = BuildService(hooked, project.id)
        labels = LabelService(hooked, project.id)

        await labels.create({"value": "v1.0.0"})
        await labels.update("v1-0-0", {"value": "v1.0.0 final"})
        await builds.create(build_payload("b1", labels=["feat"]))
        await builds.update("b1", {"message": "Amended"})
        await labels.delete("feat")
        await ProjectService(hooked).update(project.id, {"name": "Renamed"})

        for event in (
            "label:created",
            "label:updated",
            "build:created",
            "build:updated",
            "label:deleted",
            "build:deleted",
            "project:updated",
        ):
            assert event in endpoint.events

    @pytest.mark.asyncio
    async def test_custom_headers_and_signature(self, hooked, project, endpoint):
        webhooks = WebhookService(hooked, project.id)
        hook = await webhooks.create(
            {"url": HOOK_URL, "secret": "s3cret", "headers": {"authorization": "Bearer abc"}}
        )

        result = await webhooks.dispatch(WebhookEvent.PROJECT_UPDATED, {"id": project.id})

        assert result.succeeded == [hook.id]
        request = endpoint.requests[0]
        expected = hmac.new(b"s3cret", request.content, hashlib.sha256).hexdigest()
        assert request.headers["x-webhook-signature"] == expected
        assert request.headers["x-webhook-id"] == hook.id
        assert request.headers["authorization"] == "Bearer abc"

    @pytest.mark.asyncio
    async def test_unsigned_without_secret(self, hooked, project, endpoint):
        webhooks = WebhookService(hooked, project.id)
        await webhooks.create({"url": HOOK_URL})

        await webhooks.dispatch(WebhookEvent.PROJECT_UPDATED, {"id": project.id})

        assert "x-webhook-signature" not in endpoint.requests[0].headers

    @pytest.mark.asyncio
    async def test_unsubscribed_event_is_not_sent(self, hooked, project, endpoint):
        webhooks = WebhookService(hooked, project.id)
        await webhooks.create({"url": HOOK_URL, "events": ["build:deleted"]})

        result = await webhooks.dispatch(WebhookEvent.BUILD_CREATED, {"id": "b1"})

        assert result.succeeded == []
        assert endpoint.requests == []

    @pytest.mark.asyncio
    async def test_failing_endpoint_does_not_fail_the_operation(
        self, ctx, project, build_payload
    ):
        failing = Endpoint(status_code=500)
        hooked = dataclasses.replace(ctx, http_transport=httpx.MockTransport(failing))
        hook = await WebhookService(hooked, project.id).create(
            {"url": HOOK_URL, "events": ["build:created"]}
        )

        with capture_logs() as logs:
            build = await BuildService(hooked, project.id).create(build_payload("b1"))

        assert await BuildService(hooked, project.id).has(build.id)
        assert failing.events == ["build:created"]
        assert any(
            entry["event"] == "webhook_delivery_failed"
            and entry["webhook_id"] == hook.id
            and entry["log_level"] == "warning"
            for entry in logs
        )

    @pytest.mark.asyncio
    async def test_unreachable_endpoint_is_reported(self, ctx, project):
        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        def route(request):
            if request.url.host == "other.example.com":
                return httpx.Response(204)
            return unreachable(request)

        hooked = dataclasses.replace(ctx, http_transport=httpx.MockTransport(route))
        webhooks = WebhookService(hooked, project.id)
        hook = await webhooks.create({"url": HOOK_URL})
        healthy = await webhooks.create({"url": "https://other.example.com/hook"})

        result = await webhooks.dispatch(WebhookEvent.PROJECT_UPDATED, {"id": project.id})

        assert result.succeeded == [healthy.id]
        assert [failure.item_id for failure in result.failed] == [hook.id]
        assert "unreachable" in result.failed[0].message

    @pytest.mark.asyncio
    async def test_deliver_reports_status(self, ctx, project):
        hooked = dataclasses.replace(ctx, http_transport=httpx.MockTransport(Endpoint(502)))
        webhooks = WebhookService(hooked, project.id)
        hook = await webhooks.create({"url": HOOK_URL})

        delivery = await webhooks.deliver(WebhookEvent.PROJECT_UPDATED, hook, {"id": project.id})

        assert not delivery.ok
        assert "502" in delivery.error
        assert delivery.to_dict()["webhook_id"] == hook.id

    @pytest.mark.asyncio
    async def test_project_delete_notifies_and_removes_webhooks(self, hooked, project, endpoint):
        await WebhookService(hooked, project.id).create(
            {"url": HOOK_URL, "events": ["project:deleted"]}
        )

        await ProjectService(hooked).delete(project.id)

        assert endpoint.events == ["project:deleted"]
        assert endpoint.bodies()[0]["payload"]["id"] == project.id
        assert not await hooked.database.has_collection(webhooks_collection_id(project.id))


class TestWebhookEndpoints:
    """Test cases for /projects/{id}/webhooks."""

    @pytest.fixture
    def client(self, settings, endpoint):
        app = create_app(settings, http_transport=httpx.MockTransport(endpoint))
        with TestClient(app) as test_client:
            test_client.post(
                "/projects",
                json={"id": "storybook", "name": "Storybook", "github_repository": "acme/ui"},
            )
            yield test_client

    def test_crud(self, client):
        response = client.post(
            "/projects/storybook/webhooks",
            json={"url": HOOK_URL, "events": ["build:created"], "secret": "s3cret"},
        )
        assert response.status_code == 201
        webhook = response.json()
        assert "secret" not in webhook
        assert webhook["has_secret"] is True

        listed = client.get("/projects/storybook/webhooks", params={"event": "build:created"})
        assert [hook["id"] for hook in listed.json()] == [webhook["id"]]
        assert client.get("/projects/storybook/webhooks?event=label:created").json() == []

        patched = client.patch(
            f"/projects/storybook/webhooks/{webhook['id']}", json={"events": ["label:created"]}
        )
        assert patched.json()["events"] == ["label:created"]

        assert client.delete(f"/projects/storybook/webhooks/{webhook['id']}").status_code == 204
        response = client.get(f"/projects/storybook/webhooks/{webhook['id']}")
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_invalid_webhook(self, client):
        response = client.post("/projects/storybook/webhooks", json={"url": "nope"})
        assert response.status_code == 400

    def test_send_test_event(self, client, endpoint):
        webhook = client.post("/projects/storybook/webhooks", json={"url": HOOK_URL}).json()
        endpoint.requests.clear()

        response = client.post(
            f"/projects/storybook/webhooks/{webhook['id']}/test",
            params={"event": "project:updated"},
        )

        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert response.json()["status_code"] == 200
        assert endpoint.events == ["project:updated"]
        assert endpoint.bodies()[0]["payload"]["id"] == "storybook"

    def test_build_created_through_the_api(self, client, endpoint):
        client.post(
            "/projects/storybook/webhooks", json={"url": HOOK_URL, "events": "build:created"}
        )

        response = client.post(
            "/projects/storybook/builds",
            json={
                "id": "b1",
                "author_name": "Ada",
                "author_email": "ada@example.com",
                "labels": ["main"],
            },
        )

        assert response.status_code == 201
        assert endpoint.events == ["build:created"]
