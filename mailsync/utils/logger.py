"""structlog configuration: colored console for operators, JSONL file for later inspection.

Every event passes through a redaction step so bearer/refresh tokens and other
credential fields never reach a handler, whatever the call site binds.
"""

from __future__ import annotations

import logging
from typing import Any, MutableMapping

import structlog

from mailsync.config import LOG_FILE, LOG_LEVEL, VERBOSE_LOGGING

BoundLogger = structlog.stdlib.BoundLogger

REDACTED = "[redacted]"
SECRET_KEYS = frozenset(
    {
        "access_token",
        "refresh_token",
        "token",
        "authorization",
        "client_secret",
        "encrypted_refresh_token",
        "vault_key",
    }
)

# Libraries that log every request or statement at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "uvicorn.access")

_configured = False


def redact_secrets(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """structlog processor: mask values bound under credential-like keys."""
    for key in list(event_dict):
        if key.lower() in SECRET_KEYS and event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def _level() -> int:
    if VERBOSE_LOGGING:
        return logging.DEBUG
    if LOG_LEVEL.isdigit():
        return int(LOG_LEVEL)
    level = getattr(logging, LOG_LEVEL, None)
    return level if isinstance(level, int) else logging.INFO


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
    ]


def _handler(handler: logging.Handler, renderer: Any, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=_shared_processors())
    )
    return handler


def _configure_logging() -> None:
    """Route structlog through stdlib logging once per process."""
    global _configured
    if _configured:
        return

    level = _level()
    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(_handler(logging.StreamHandler(), structlog.dev.ConsoleRenderer(colors=True), level))
    root.addHandler(
        _handler(logging.FileHandler(LOG_FILE, encoding="utf-8"), structlog.processors.JSONRenderer(), level)
    )
    logging.captureWarnings(True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str = "mailsync", **bindings: Any) -> BoundLogger:
    """Structured logger for a module, optionally pre-bound with context."""
    _configure_logging()
    logger = structlog.get_logger(name)
    return logger.bind(**bindings) if bindings else logger


def bind_context(**context: Any) -> None:
    """Attach context (tenant_id, user_id, command...) to every event in this task."""
    structlog.contextvars.bind_contextvars(**context)


def unbind_context(*keys: str) -> None:
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
