"""Structured logging for the coding engine, built on structlog.

``configure_logging()`` is called by :func:`coding_analytics.api.main.create_app`;
an embedding platform that uses the engine without the HTTP layer calls it
itself.  Engine modules then log through structlog::

    logger = structlog.get_logger(__name__)
    logger.info("code.created", code_id=str(code.id), project_id=str(project_id))

Event names are dotted ``<subject>.<verb>`` pairs (``code.deleted``,
``annotation.forbidden``, ``analysis.temporal``) so that log queries can
select one area of the engine by prefix.

Records from stdlib loggers (SQLAlchemy, aiosqlite, the ASGI server) go
through the same processors and renderer as structlog events.  The
``request_id`` set by the request-logging middleware is attached to every
record emitted while that request is served.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
"""Id of the HTTP request being served, or None outside a request."""

REDACTED = "[REDACTED]"

# Matched case-insensitively as substrings of event keys.
_SENSITIVE_KEY_PARTS = ("password", "secret", "token", "authorization", "cookie", "database_url")

# Loggers that are silenced to WARNING outside DEBUG.
_CHATTY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "uvicorn.access")


def _is_sensitive(key: Any) -> bool:
    lowered = str(key).lower()
    return any(part in lowered for part in _SENSITIVE_KEY_PARTS)


def redact_sensitive(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask credentials: DSNs, tokens and auth headers, one level deep."""
    for key, value in list(event_dict.items()):
        if _is_sensitive(key):
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                inner: REDACTED if _is_sensitive(inner) else inner_value
                for inner, inner_value in value.items()
            }
    return event_dict


def add_request_id(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    request_id = request_id_var.get()
    if request_id is not None:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def _pre_chain() -> list[Processor]:
    """Processors shared by structlog events and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        redact_sensitive,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _stdout_handler(renderer: Processor, pre_chain: list[Processor]) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    return handler


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog and stdlib logging to stdout.

    ``DEBUG`` selects the coloured console renderer; every other level
    writes one JSON object per line with at least ``timestamp``, ``level``,
    ``logger`` and ``event``.  Repeated calls replace the root handler
    instead of adding another one.

    Args:
        log_level: Standard level name, case-insensitive.  Unknown names
            mean INFO.
    """
    level_name = log_level.upper()
    debugging = level_name == "DEBUG"
    renderer: Processor = (
        structlog.dev.ConsoleRenderer(colors=True)
        if debugging
        else structlog.processors.JSONRenderer()
    )
    pre_chain = _pre_chain()

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_stdout_handler(renderer, pre_chain))
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if debugging else logging.WARNING)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
