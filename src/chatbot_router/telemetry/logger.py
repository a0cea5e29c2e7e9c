"""Structured logging configuration with request correlation IDs."""

import logging
import sys
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

import orjson
import structlog
from structlog.processors import CallsiteParameter

from chatbot_router.config import get_settings

# Context variables for request tracking
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str] = ContextVar("user_id", default="")
session_id_var: ContextVar[str] = ContextVar("session_id", default="")

PREVIEW_LENGTH = 100


def preview(text: str, limit: int = PREVIEW_LENGTH) -> str:
    """Shorten user text before it reaches a log line."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


def add_context_vars(logger, method_name, event_dict):
    """Add context variables to log events."""
    if request_id := request_id_var.get():
        event_dict["request_id"] = request_id
    if user_id := user_id_var.get():
        event_dict["user_id"] = user_id
    if session_id := session_id_var.get():
        event_dict["session_id"] = session_id
    return event_dict


def _orjson_dumps(value: Any, **kwargs) -> str:
    return orjson.dumps(value, default=str).decode()


def setup_logging(level: str | None = None, format: str | None = None) -> None:
    """Configure structured logging for the router."""
    settings = get_settings()
    log_level = level or settings.log_level
    log_format = format or settings.log_format

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_context_vars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                CallsiteParameter.FILENAME,
                CallsiteParameter.FUNC_NAME,
                CallsiteParameter.LINENO,
            ]
        ),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer(serializer=_orjson_dumps))
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class RequestContext:
    """Context manager for request-scoped logging."""

    def __init__(
        self,
        request_id: str | None = None,
        user_id: str | None = None,
        session_id: str | None = None,
    ):
        """Initialize request context."""
        self.request_id = request_id or str(uuid4())
        self.user_id = user_id
        self.session_id = session_id
        self._tokens = []

    def __enter__(self):
        """Enter context."""
        self._tokens.append((request_id_var, request_id_var.set(self.request_id)))
        if self.user_id:
            self._tokens.append((user_id_var, user_id_var.set(self.user_id)))
        if self.session_id:
            self._tokens.append((session_id_var, session_id_var.set(self.session_id)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context."""
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
        return False
