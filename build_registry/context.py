"""
Request-scoped context passed explicitly into every service.

One RequestContext is built per HTTP request or CLI invocation. It carries
the resolved store handles, the caller and a cancellation signal; nothing
here is process-wide.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Optional

import httpx

from .config import Settings, get_settings
from .errors import OperationCancelledError
from .storage.base import BlobStore, DocumentStore


@dataclass
class RequestContext:
    """Everything a service needs to serve one operation.

    Attributes:
        database: Document store holding projects, labels and builds
        storage: Blob store holding build artifacts
        cancel_event: Set by the caller to abandon the operation
        user: Authenticated caller, if any
        request_id: Correlation id bound into log events
        settings: Application settings
        http_transport: Transport for outgoing webhook calls (None = network)
    """

    database: DocumentStore
    storage: BlobStore
    cancel_event: Optional[asyncio.Event] = None
    user: Optional[str] = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    settings: Settings = field(default_factory=get_settings)
    http_transport: Optional[httpx.AsyncBaseTransport] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def check_cancelled(self) -> None:
        """Raise if the caller has cancelled. Already committed writes stay."""
        if self.cancelled:
            raise OperationCancelledError()
