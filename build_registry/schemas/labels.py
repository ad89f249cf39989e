"""
Label schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, constr

from ..enums import LabelType
from ..primitives import utc_now


class Label(BaseModel):
    """A grouping of builds: a branch, a pull request or a ticket.

    Invariants:
    - id == slug, derived from value and unique within the project.
    - The label whose slug is slugify(project.github_default_branch) cannot
      be deleted while the project exists.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    slug: str
    value: str = Field(..., description="The display value of the label")
    type: LabelType
    latest_build_id: Optional[str] = Field(
        None, description="Most recent build carrying this label"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class LabelCreate(BaseModel):
    """Schema for creating a new Label. The slug is derived from value."""

    model_config = ConfigDict(extra="forbid")

    value: constr(min_length=1, max_length=256)
    type: Optional[LabelType] = None
    latest_build_id: Optional[str] = None


class LabelUpdate(BaseModel):
    """Partial update of a Label."""

    model_config = ConfigDict(extra="forbid")

    value: Optional[constr(min_length=1, max_length=256)] = None
    type: Optional[LabelType] = None
    latest_build_id: Optional[str] = None
