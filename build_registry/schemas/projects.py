"""
Project schemas.

A project is the tenant boundary: one Storybook instance, owning its labels,
builds and blob container.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator

from ..primitives import PROJECT_ID_PATTERN, utc_now


def _check_repository(value: str) -> str:
    parts = value.split("/")
    if len(parts) != 2 or not all(part.strip() for part in parts):
        raise ValueError("github_repository should be in the format 'owner/repo'.")
    return value


class Project(BaseModel):
    """A stored project.

    Invariants:
    - id is immutable.
    - latest_build_id, if set, points at a build of this project (eventually
      consistent, cleared when that build is deleted).
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Project slug, unique and immutable")
    name: constr(min_length=1, max_length=256)
    github_repository: str = Field(..., description="GitHub repository as 'owner/repo'")
    github_default_branch: str = Field("main", description="Default branch of the repository")
    github_path: Optional[str] = Field(
        None, description="Path to the Storybook project relative to the repository root"
    )
    jira_domain: Optional[str] = Field(None, description="Base URL of the linked Jira instance")
    latest_build_id: Optional[str] = Field(
        None, description="Most recent build on the default branch"
    )
    purge_after_days: int = Field(30, ge=1, description="Retention window for builds")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ProjectCreate(BaseModel):
    """Schema for creating a new Project.

    Omitted branch and retention fall back to the configured defaults.
    """

    model_config = ConfigDict(extra="forbid")

    id: str
    name: constr(min_length=1, max_length=256)
    github_repository: str
    github_default_branch: Optional[constr(min_length=1, max_length=256)] = None
    github_path: Optional[str] = None
    jira_domain: Optional[str] = None
    purge_after_days: Optional[int] = Field(None, ge=1)

    @field_validator("id")
    @classmethod
    def check_id(cls, value: str) -> str:
        if not PROJECT_ID_PATTERN.match(value):
            raise ValueError(
                "Project id should contain only lowercase alphabets, numbers and hyphen."
            )
        return value

    @field_validator("github_repository")
    @classmethod
    def check_repository(cls, value: str) -> str:
        return _check_repository(value)


class ProjectUpdate(BaseModel):
    """Partial update of a Project. The id cannot be changed."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[constr(min_length=1, max_length=256)] = None
    github_repository: Optional[str] = None
    github_default_branch: Optional[constr(min_length=1, max_length=256)] = None
    github_path: Optional[str] = None
    jira_domain: Optional[str] = None
    latest_build_id: Optional[str] = None
    purge_after_days: Optional[int] = Field(None, ge=1)

    @field_validator("github_repository")
    @classmethod
    def check_repository(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _check_repository(value)
