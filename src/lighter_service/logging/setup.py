"""Structured logging setup with structlog."""

from __future__ import annotations

import logging
import re
import sys

import structlog

REDACTED = "[REDACTED]"

_SECRET_KEYS = ("private_key", "signature", "authorization", "secret", "token", "password")
# Bare 32-byte hex strings are private keys.
_HEX_KEY_RE = re.compile(r"(0x)?[0-9a-fA-F]{64}")


def redact_secrets(
    _logger: object,
    _method: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Mask secret-looking fields before they reach a renderer."""
    for key, value in list(event_dict.items()):
        if any(marker in key.lower() for marker in _SECRET_KEYS):
            event_dict[key] = REDACTED
        elif isinstance(value, str):
            event_dict[key] = _HEX_KEY_RE.sub(REDACTED, value)
    return event_dict


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
) -> None:
    """Configure structlog for the service.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: "json" for production, "console" for development.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "console":
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # httpx logs every request at INFO; keep it to warnings.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str | None = None, **initial_context) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, optionally pre-bound with context."""
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger
