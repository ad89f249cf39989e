"""
Webhook service.

Webhooks live in a per-project collection. ``dispatch`` posts one event to
every hook subscribed to it, concurrently and best-effort: a slow or failing
endpoint is reported in the BatchResult and logged, never raised.

Request body: ``{"event", "project_id", "payload"}``. Headers carry
``x-webhook-id``, ``x-webhook-event``, ``x-webhook-project-id`` and, for
hooks with a secret, ``x-webhook-signature`` (hex HMAC-SHA256 of the body).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import httpx

from ..context import RequestContext
from ..enums import WebhookEvent
from ..errors import (
    NotFoundError,
    OperationCancelledError,
    RegistryError,
    WebhookDeliveryError,
)
from ..primitives import utc_now, webhooks_collection_id
from ..schemas import Webhook, WebhookCreate, WebhookUpdate
from ..storage.base import Document, ListOptions
from .base import BaseService, dump_document, parse_input
from .batch import BatchResult, gather_settled


@dataclass
class WebhookDelivery:
    """Result of posting one event to one webhook."""

    webhook_id: str
    url: str
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "webhook_id": self.webhook_id,
            "url": self.url,
            "ok": self.ok,
            "status_code": self.status_code,
            "error": self.error,
        }


def sign_body(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of a request body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class WebhookService(BaseService):
    """Service for managing and notifying the webhooks of one project."""

    kind = "webhook"

    def __init__(self, ctx: RequestContext, project_id: str):
        super().__init__(ctx, project_id)
        self.collection_id = webhooks_collection_id(project_id)

    async def list(
        self,
        options: Optional[ListOptions] = None,
        *,
        event: Optional[WebhookEvent] = None,
    ) -> List[Webhook]:
        """List webhooks, optionally only those subscribed to ``event``."""
        with self._translate():
            documents = await self.database.list_documents(self.collection_id, options)
        webhooks = [Webhook.model_validate(doc) for doc in documents]
        if event is not None:
            webhooks = [hook for hook in webhooks if hook.wants(WebhookEvent(event))]
        return webhooks

    async def create(self, data: Union[WebhookCreate, Mapping[str, Any]]) -> Webhook:
        payload = parse_input(WebhookCreate, data)
        now = utc_now()
        webhook = Webhook(
            id=uuid.uuid4().hex,
            url=str(payload.url),
            headers=payload.headers,
            events=payload.events,
            secret=payload.secret,
            created_at=now,
            updated_at=now,
        )
        with self._translate(webhook.id):
            await self.database.create_document(self.collection_id, dump_document(webhook))
        self.logger.info("webhook_created", webhook_id=webhook.id, url=webhook.url)
        return webhook

    async def get(self, webhook_id: str) -> Webhook:
        with self._translate(webhook_id):
            document = await self.database.get_document(self.collection_id, webhook_id)
        return Webhook.model_validate(document)

    async def has(self, webhook_id: str) -> bool:
        try:
            await self.get(webhook_id)
        except NotFoundError:
            return False
        return True

    async def update(
        self, webhook_id: str, data: Union[WebhookUpdate, Mapping[str, Any]]
    ) -> Webhook:
        """Merge a partial update; ``events`` and ``secret`` may be reset to None."""
        payload = parse_input(WebhookUpdate, data)
        patch: Document = {
            key: value
            for key, value in payload.model_dump(mode="json", exclude_unset=True).items()
            if value is not None or key in ("events", "secret")
        }
        patch["updated_at"] = utc_now().isoformat()
        with self._translate(webhook_id):
            document = await self.database.update_document(self.collection_id, webhook_id, patch)
        return Webhook.model_validate(document)

    async def delete(self, webhook_id: str) -> None:
        with self._translate(webhook_id):
            await self.database.delete_document(self.collection_id, webhook_id)
        self.logger.info("webhook_deleted", webhook_id=webhook_id)

    async def dispatch(
        self,
        event: WebhookEvent,
        payload: Mapping[str, Any],
        *,
        webhooks: Optional[Sequence[Webhook]] = None,
    ) -> BatchResult:
        """Post ``event`` to every subscribed webhook.

        Args:
            event: Event being announced
            payload: JSON-safe description of the entity
            webhooks: Hooks to notify, when already loaded (project delete)

        Returns:
            BatchResult keyed by webhook id
        """
        event = WebhookEvent(event)
        if webhooks is None:
            try:
                webhooks = await self.list()
            except OperationCancelledError:
                raise
            except NotFoundError:
                # Project already gone.
                return BatchResult()
            except RegistryError as e:
                self.logger.warning("webhook_list_failed", webhook_event=event.value, error=str(e))
                return BatchResult()
        targets = [hook for hook in webhooks if hook.wants(event)]
        if not targets:
            return BatchResult()

        body = self._encode(event, payload)
        async with self._client() as client:
            result = await gather_settled(
                targets,
                lambda hook: self._post(client, event, hook, body),
                key=lambda hook: hook.id,
            )
        for failure in result.failed:
            self.logger.warning(
                "webhook_delivery_failed",
                webhook_id=failure.item_id,
                webhook_event=event.value,
                error=failure.message,
            )
        return result

    async def deliver(
        self, event: WebhookEvent, webhook: Webhook, payload: Mapping[str, Any]
    ) -> WebhookDelivery:
        """Post one event to one webhook and report how it went."""
        event = WebhookEvent(event)
        body = self._encode(event, payload)
        async with self._client() as client:
            try:
                response = await self._post(client, event, webhook, body)
            except WebhookDeliveryError as e:
                return WebhookDelivery(webhook.id, webhook.url, ok=False, error=e.message)
        return WebhookDelivery(webhook.id, webhook.url, ok=True, status_code=response.status_code)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.ctx.settings.webhook_timeout_seconds,
            transport=self.ctx.http_transport,
        )

    def _encode(self, event: WebhookEvent, payload: Mapping[str, Any]) -> bytes:
        body = {"event": event.value, "project_id": self.project_id, "payload": dict(payload)}
        return json.dumps(body, default=str).encode("utf-8")

    async def _post(
        self, client: httpx.AsyncClient, event: WebhookEvent, webhook: Webhook, body: bytes
    ) -> httpx.Response:
        self.ctx.check_cancelled()
        headers = {
            **webhook.headers,
            "content-type": "application/json",
            "x-webhook-id": webhook.id,
            "x-webhook-event": event.value,
            "x-webhook-project-id": self.project_id,
        }
        if webhook.secret:
            headers["x-webhook-signature"] = sign_body(webhook.secret, body)

        try:
            response = await client.post(webhook.url, content=body, headers=headers)
        except httpx.HTTPError as e:
            raise WebhookDeliveryError(f"{webhook.url} unreachable: {e}") from e
        if response.is_error:
            raise WebhookDeliveryError(f"{webhook.url} answered {response.status_code}")

        self.logger.info(
            "webhook_delivered",
            webhook_id=webhook.id,
            webhook_event=event.value,
            status_code=response.status_code,
        )
        return response
