"""
Common primitives used across the registry.

Naming of per-project collections and containers lives here so every
service (and every backend) derives the same names from a project id.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

SERVICE_NAME = "registry"

PROJECTS_COLLECTION = f"{SERVICE_NAME}-projects"

# Lowercase alphanumerics and hyphens, so derived names are valid on every backend.
PROJECT_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{0,60}$")
BUILD_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def builds_collection_id(project_id: str) -> str:
    """Document collection holding a project's builds."""
    return f"{SERVICE_NAME}-{project_id}-builds"


def labels_collection_id(project_id: str) -> str:
    """Document collection holding a project's labels."""
    return f"{SERVICE_NAME}-{project_id}-labels"


def webhooks_collection_id(project_id: str) -> str:
    """Document collection holding a project's webhooks."""
    return f"{SERVICE_NAME}-{project_id}-webhooks"


def project_container_id(project_id: str) -> str:
    """Blob container holding a project's artifacts."""
    return f"{SERVICE_NAME}-{project_id}"


def parse_timestamp(value) -> datetime:
    """Parse a stored timestamp (ISO string or datetime) into an aware datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
