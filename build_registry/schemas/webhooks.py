"""
Webhook schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, field_validator

from ..enums import WebhookEvent
from ..primitives import utc_now


def _as_event_list(value):
    if isinstance(value, str):
        return [value]
    return value


class Webhook(BaseModel):
    """An HTTP endpoint notified about a project's events.

    events of None means every event.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    events: Optional[List[WebhookEvent]] = None
    secret: Optional[str] = Field(None, description="Key for the x-webhook-signature HMAC")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def wants(self, event: WebhookEvent) -> bool:
        return self.events is None or event in self.events


class WebhookCreate(BaseModel):
    """Schema for creating a new Webhook. The id is generated."""

    model_config = ConfigDict(extra="forbid")

    url: AnyHttpUrl
    headers: Dict[str, str] = Field(default_factory=dict)
    events: Optional[List[WebhookEvent]] = None
    secret: Optional[str] = None

    @field_validator("events", mode="before")
    @classmethod
    def single_event(cls, value: Union[str, List[str], None]):
        return _as_event_list(value)


class WebhookUpdate(BaseModel):
    """Partial update of a Webhook."""

    model_config = ConfigDict(extra="forbid")

    url: Optional[AnyHttpUrl] = None
    headers: Optional[Dict[str, str]] = None
    events: Optional[List[WebhookEvent]] = None
    secret: Optional[str] = None

    @field_validator("events", mode="before")
    @classmethod
    def single_event(cls, value: Union[str, List[str], None]):
        return _as_event_list(value)
