"""
Build Registry

Tracks Storybook projects, their builds and labels, and stores build
artifacts in pluggable document and blob stores.
"""

import importlib.metadata

__version__ = importlib.metadata.version("build-registry")

from .config import Settings, get_settings
from .context import RequestContext
from .enums import ArtifactStatus, LabelType, UploadVariant
from .errors import (
    AlreadyExistsError,
    BackendUnavailableError,
    NotFoundError,
    OperationCancelledError,
    ProtectedError,
    RegistryError,
    UploadError,
    ValidationError,
)
from .services import (
    BatchResult,
    BuildService,
    LabelService,
    ProjectService,
    PurgeReport,
    PurgeScheduler,
    PurgeService,
)

__all__ = [
    "AlreadyExistsError",
    "ArtifactStatus",
    "BackendUnavailableError",
    "BatchResult",
    "BuildService",
    "LabelService",
    "LabelType",
    "NotFoundError",
    "OperationCancelledError",
    "ProjectService",
    "ProtectedError",
    "PurgeReport",
    "PurgeScheduler",
    "PurgeService",
    "RegistryError",
    "RequestContext",
    "Settings",
    "UploadError",
    "UploadVariant",
    "ValidationError",
    "get_settings",
]
