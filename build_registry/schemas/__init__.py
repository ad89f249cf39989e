"""
Pydantic schemas for projects, labels, builds and webhooks.
"""

from .builds import Build, BuildCreate, BuildStory, BuildUpdate
from .labels import Label, LabelCreate, LabelUpdate
from .projects import Project, ProjectCreate, ProjectUpdate
from .webhooks import Webhook, WebhookCreate, WebhookUpdate

__all__ = [
    "Build",
    "BuildCreate",
    "BuildStory",
    "BuildUpdate",
    "Label",
    "LabelCreate",
    "LabelUpdate",
    "Project",
    "ProjectCreate",
    "ProjectUpdate",
    "Webhook",
    "WebhookCreate",
    "WebhookUpdate",
]
