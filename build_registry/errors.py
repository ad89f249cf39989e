"""
Domain errors for the build registry.

Every error carries a stable ``code`` for programmatic handling and the
status code the HTTP boundary should answer with. Store-level errors are
translated into these before they leave the service layer.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RegistryError(Exception):
    """Base class for all domain errors.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
        status_code: Status code used by the HTTP boundary
    """

    code = "registry_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
        }


class NotFoundError(RegistryError):
    """Raised when a project, label, build or file does not exist."""

    code = "not_found"
    status_code = 404

    def __init__(self, kind: str, entity_id: str, *, project_id: Optional[str] = None):
        self.kind = kind
        self.entity_id = entity_id
        self.project_id = project_id
        where = f" in project '{project_id}'" if project_id else ""
        super().__init__(f"{kind.capitalize()} '{entity_id}' does not exist{where}.")


class AlreadyExistsError(RegistryError):
    """Raised when creating an entity whose id is already taken."""

    code = "already_exists"
    status_code = 409

    def __init__(self, kind: str, entity_id: str, *, project_id: Optional[str] = None):
        self.kind = kind
        self.entity_id = entity_id
        self.project_id = project_id
        where = f" in project '{project_id}'" if project_id else ""
        super().__init__(f"{kind.capitalize()} '{entity_id}' already exists{where}.")


class ProtectedError(RegistryError):
    """Raised when deleting the label tied to a project's default branch."""

    code = "protected"
    status_code = 403


class ValidationError(RegistryError):
    """Raised for malformed input, always before any store call."""

    code = "validation_error"
    status_code = 400


class BackendUnavailableError(RegistryError):
    """Raised when a store is not initialised or cannot be reached."""

    code = "backend_unavailable"
    status_code = 500


class UploadError(RegistryError):
    """Raised when an artifact upload could not be stored or unpacked."""

    code = "upload_failed"
    status_code = 422


class OperationCancelledError(RegistryError):
    """Raised when the caller cancelled the operation mid-way."""

    code = "cancelled"
    status_code = 499

    def __init__(self) -> None:
        super().__init__("The operation was cancelled by the caller.")


class WebhookDeliveryError(RegistryError):
    """Raised when a webhook endpoint could not be reached or rejected the event."""

    code = "webhook_delivery_failed"
    status_code = 502
