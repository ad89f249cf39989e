"""
Registry services: projects, labels, builds, webhooks and the purge sweep.
"""

from .base import BaseService, dump_document, parse_input
from .batch import BatchResult, ItemFailure, gather_settled
from .builds import BuildService
from .labels import LabelService
from .projects import ProjectService
from .purge import ProjectPurgeResult, PurgeReport, PurgeService
from .scheduler import PurgeScheduler
from .webhooks import WebhookDelivery, WebhookService, sign_body

__all__ = [
    "BaseService",
    "BatchResult",
    "BuildService",
    "ItemFailure",
    "LabelService",
    "ProjectPurgeResult",
    "ProjectService",
    "PurgeReport",
    "PurgeScheduler",
    "PurgeService",
    "WebhookDelivery",
    "WebhookService",
    "dump_document",
    "gather_settled",
    "parse_input",
    "sign_body",
]
