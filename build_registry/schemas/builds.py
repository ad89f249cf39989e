"""
Build schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator

from ..enums import ArtifactStatus
from ..primitives import BUILD_ID_PATTERN, utc_now


def _check_email(value: str) -> str:
    if "@" not in value:
        raise ValueError("Invalid email format")
    return value


class Build(BaseModel):
    """One commit's artifact bundle.

    Invariants:
    - id is the commit SHA (or another caller-supplied id), unique per project.
    - label_slugs is an ordered set: no duplicates, first reference wins.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    sha: str
    author_name: str
    author_email: str
    message: Optional[str] = None
    label_slugs: List[str] = Field(default_factory=list)

    storybook: ArtifactStatus = ArtifactStatus.NONE
    test_report: ArtifactStatus = ArtifactStatus.NONE
    coverage: ArtifactStatus = ArtifactStatus.NONE
    screenshots: ArtifactStatus = ArtifactStatus.NONE

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class BuildCreate(BaseModel):
    """Schema for creating a new Build.

    labels accepts a list or a comma-separated string; each entry is either
    ``slug``, ``slug;type`` or ``slug;type;value``.
    """

    model_config = ConfigDict(extra="forbid")

    id: constr(min_length=1, max_length=128) = Field(..., description="Commit SHA")
    author_name: constr(min_length=1, max_length=256)
    author_email: str
    message: Optional[str] = None
    labels: Union[List[str], str] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def check_id(cls, value: str) -> str:
        # Used as a directory name in the project container.
        if not BUILD_ID_PATTERN.match(value):
            raise ValueError(
                "Build id should start with a letter or number and contain only "
                "letters, numbers, dot, underscore and hyphen."
            )
        return value

    @field_validator("author_email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)

    def label_refs(self) -> List[str]:
        """Raw label references with empty entries dropped."""
        raw = self.labels.split(",") if isinstance(self.labels, str) else self.labels
        return [ref.strip() for ref in raw if ref and ref.strip()]


class BuildUpdate(BaseModel):
    """Partial update of a Build. id and sha cannot be changed."""

    model_config = ConfigDict(extra="forbid")

    author_name: Optional[constr(min_length=1, max_length=256)] = None
    author_email: Optional[str] = None
    message: Optional[str] = None
    label_slugs: Optional[List[str]] = None
    storybook: Optional[ArtifactStatus] = None
    test_report: Optional[ArtifactStatus] = None
    coverage: Optional[ArtifactStatus] = None
    screenshots: Optional[ArtifactStatus] = None

    @field_validator("author_email")
    @classmethod
    def check_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _check_email(value)


class BuildStory(BaseModel):
    """One entry of a Storybook ``index.json``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    title: str
    name: str
    import_path: str = Field(..., alias="importPath")
    tags: List[str] = Field(default_factory=list)
    type: str
    component_path: Optional[str] = Field(None, alias="componentPath")
