"""
Shared plumbing for the registry services.

Services talk to the stores only inside ``self._translate(...)``: it checks
for cancellation before the call and turns store errors into domain errors,
so raw backend errors never reach the boundary.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Type, TypeVar, Union

import pydantic
import structlog
from pydantic import BaseModel

from ..context import RequestContext
from ..enums import WebhookEvent
from ..errors import (
    AlreadyExistsError,
    BackendUnavailableError,
    NotFoundError,
    RegistryError,
    ValidationError,
)
from ..storage.errors import (
    CollectionNotFoundError,
    ContainerNotFoundError,
    DocumentAlreadyExistsError,
    DocumentNotFoundError,
    FileNotFoundInStoreError,
    InvalidPathError,
    StoreError,
)

logger = structlog.get_logger()

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def parse_input(schema: Type[SchemaT], data: Union[SchemaT, Mapping[str, Any]]) -> SchemaT:
    """Validate caller input, raising the domain ValidationError on failure."""
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except pydantic.ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid {schema.__name__}: {details}") from e


def dump_document(model: BaseModel) -> Dict[str, Any]:
    """Serialise a schema into a JSON-safe document."""
    return model.model_dump(mode="json")


class BaseService:
    """Base class binding a service to one request context.

    Attributes:
        kind: Entity name used in domain errors and log events
        project_id: Owning project, None for the project service itself
    """

    kind = "entity"

    def __init__(self, ctx: RequestContext, project_id: Optional[str] = None):
        self.ctx = ctx
        self.project_id = project_id
        self.database = ctx.database
        self.storage = ctx.storage
        self.logger = logger.bind(
            service=type(self).__name__,
            request_id=ctx.request_id,
            project_id=project_id,
        )

    def _missing_collection(self, entity_id: Optional[str]) -> RegistryError:
        return NotFoundError("project", self.project_id or entity_id or "")

    @contextmanager
    def _translate(self, entity_id: Optional[str] = None) -> Iterator[None]:
        """Check cancellation, then map store errors raised in the block."""
        self.ctx.check_cancelled()
        try:
            yield
        except DocumentNotFoundError as e:
            raise NotFoundError(
                self.kind, entity_id or e.document_id, project_id=self.project_id
            ) from e
        except DocumentAlreadyExistsError as e:
            raise AlreadyExistsError(
                self.kind, entity_id or e.document_id, project_id=self.project_id
            ) from e
        except (CollectionNotFoundError, ContainerNotFoundError) as e:
            raise self._missing_collection(entity_id) from e
        except FileNotFoundInStoreError as e:
            raise NotFoundError("file", e.path, project_id=self.project_id) from e
        except InvalidPathError as e:
            raise ValidationError(str(e)) from e
        except (StoreError, OSError) as e:
            self.logger.error("store_call_failed", entity_id=entity_id, error=str(e))
            raise BackendUnavailableError(f"Store unavailable: {e}") from e

    async def _notify(
        self,
        event: WebhookEvent,
        payload: BaseModel,
        *,
        project_id: Optional[str] = None,
        webhooks: Optional[Sequence[Any]] = None,
    ) -> None:
        """Tell the project's webhooks about a change. Delivery failures are only logged."""
        from .webhooks import WebhookService

        service = WebhookService(self.ctx, project_id or self.project_id)
        await service.dispatch(event, dump_document(payload), webhooks=webhooks)
