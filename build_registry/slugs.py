"""
Label slug helpers.

Rules:
- slugify: trim, lowercase, then replace every run of non-word characters
  with a single hyphen (ASCII word characters only).
- infer_label_type: all digits -> pr; ``word-digits`` -> jira; else branch.
- parse_label_ref: ``slug``, ``slug;type`` or ``slug;type;value``.
"""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

from .enums import LabelType
from .errors import ValidationError

_NON_WORD = re.compile(r"\W+", re.ASCII)
_PR_PATTERN = re.compile(r"^\d+$", re.ASCII)
_JIRA_PATTERN = re.compile(r"^\w+-\d+$", re.ASCII)


class LabelRef(NamedTuple):
    """A parsed label reference from a build's label list."""

    slug: str
    type: Optional[LabelType]
    value: Optional[str]


def slugify(value: str) -> str:
    """Derive a label slug from its display value.

    Examples:
        " My Branch! " -> "my-branch-"
        "feature/login" -> "feature-login"
        "a!b!c" -> "a-b-c"
    """
    return _NON_WORD.sub("-", value.strip().lower())


def infer_label_type(slug: str) -> LabelType:
    """Guess the label type from its slug."""
    if _PR_PATTERN.match(slug):
        return LabelType.PR
    if _JIRA_PATTERN.match(slug):
        return LabelType.JIRA
    return LabelType.BRANCH


def parse_label_ref(raw: str) -> LabelRef:
    """Parse the ``slug[;type[;value]]`` shorthand.

    The slug part is normalised with :func:`slugify` so the same reference
    always resolves to the same label document.

    Raises:
        ValidationError: If the slug part is empty or the type is unknown.
    """
    parts = [part.strip() for part in raw.split(";")]
    raw_slug = parts[0]
    if not raw_slug:
        raise ValidationError(f"Label reference '{raw}' has an empty slug.")

    label_type: Optional[LabelType] = None
    if len(parts) > 1 and parts[1]:
        try:
            label_type = LabelType(parts[1].lower())
        except ValueError as e:
            raise ValidationError(
                f"Label reference '{raw}' has unknown type '{parts[1]}'."
            ) from e

    value = ";".join(parts[2:]) if len(parts) > 2 and parts[2] else None
    return LabelRef(slug=slugify(raw_slug), type=label_type, value=value or raw_slug)
