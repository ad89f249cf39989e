"""
Canonical enums shared by schemas, services and the HTTP boundary.
"""

from enum import Enum


class LabelType(str, Enum):
    """What a label groups builds by."""

    BRANCH = "branch"
    PR = "pr"
    JIRA = "jira"


class ArtifactStatus(str, Enum):
    """Lifecycle of one uploaded artifact variant of a build."""

    NONE = "none"
    UPLOADING = "uploading"
    READY = "ready"
    FAILED = "failed"


class UploadVariant(str, Enum):
    """Artifact variants a build can carry.

    The value doubles as the blob path segment; ``field`` is the build
    attribute holding the variant's status.
    """

    STORYBOOK = "storybook"
    TEST_REPORT = "testReport"
    COVERAGE = "coverage"
    SCREENSHOTS = "screenshots"

    @property
    def field(self) -> str:
        return _VARIANT_FIELDS[self]


_VARIANT_FIELDS = {
    UploadVariant.STORYBOOK: "storybook",
    UploadVariant.TEST_REPORT: "test_report",
    UploadVariant.COVERAGE: "coverage",
    UploadVariant.SCREENSHOTS: "screenshots",
}


class WebhookEvent(str, Enum):
    """Events delivered to a project's webhooks."""

    BUILD_CREATED = "build:created"
    BUILD_UPDATED = "build:updated"
    BUILD_DELETED = "build:deleted"
    LABEL_CREATED = "label:created"
    LABEL_UPDATED = "label:updated"
    LABEL_DELETED = "label:deleted"
    PROJECT_CREATED = "project:created"
    PROJECT_UPDATED = "project:updated"
    PROJECT_DELETED = "project:deleted"
