"""Structured logging for Pressograph.

``setup_logging`` picks the renderer from ``settings.log_format`` (console in
development, JSON lines in production). Every record passes through
``redact_secrets`` so connection strings and the cookie secret never reach
the log stream. ``bind_request`` scopes ``request_id`` and ``user_id`` to the
current task so tier errors can be traced back to the HTTP call that caused
them.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import structlog
from pressograph.config import settings

REDACTED = "***"

_SECRET_KEYS = frozenset({"cookie_secret", "password", "signature"})
_URL_CREDENTIALS = re.compile(r"(\w+://[^:/@\s]+):[^@\s]+@")


def redact_secrets(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask secret fields and passwords embedded in connection URLs."""
    for key, value in event_dict.items():
        if key in _SECRET_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, str) and "://" in value:
            event_dict[key] = _URL_CREDENTIALS.sub(rf"\1:{REDACTED}@", value)
    return event_dict


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """Configure structlog. Arguments override the settings values."""
    fmt = log_format or settings.log_format
    level = logging.getLevelName((log_level or settings.log_level).upper())
    if not isinstance(level, int):
        level = logging.INFO

    if fmt == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_secrets,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request(request_id: str, user_id: str | None = None) -> None:
    """Replace the task-local log context with this request's identifiers."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, user_id=user_id)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, optionally bound to a component name."""
    log = structlog.get_logger()
    if name:
        log = log.bind(component=name)
    return log
