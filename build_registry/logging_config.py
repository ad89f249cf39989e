"""
structlog setup shared by the API, the CLI and the purge worker.

Events go to stderr so CLI output on stdout stays clean. Every event carries
the ``app`` name; services bind request_id and project_id themselves.
"""

from __future__ import annotations

import sys
from typing import Any, List, MutableMapping, Optional

import structlog
from structlog.types import Processor

from .primitives import SERVICE_NAME


def _add_app(app: str) -> Processor:
    def add_app(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]):
        event_dict.setdefault("app", app)
        return event_dict

    return add_app


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Looked up per logger, so a swapped sys.stderr (tests, CLI runners) is honoured.
    return structlog.PrintLogger(sys.stderr)


def configure_logging(
    level: str = "info", fmt: str = "json", *, app: Optional[str] = None
) -> None:
    """Configure structlog.

    Args:
        level: Minimum level name (debug, info, warning, error, critical)
        fmt: ``json`` for one object per line, ``console`` for humans
        app: Value of the ``app`` key on every event

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    try:
        min_level = structlog.get_level_from_name(level)
    except KeyError:
        raise ValueError(f"Unknown log level: {level}") from None

    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_app(app or SERVICE_NAME),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if fmt == "json":
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        # ConsoleRenderer formats exc_info itself.
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=_stderr_logger,
    )
