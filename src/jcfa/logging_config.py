"""Structured logging configuration for jcfa.

- JSON structured logging with StructuredFormatter
- Human-readable TextFormatter (default for interactive CLI use)
- Logger hierarchy under the ``jcfa`` namespace
- Environment variable control (JCFA_LOG_LEVEL, JCFA_LOG_FORMAT)

Logs always go to stderr so that ``--json`` output on stdout stays parseable.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

__all__ = ["SENSITIVE_KEYS", "StructuredFormatter", "TextFormatter", "configure_logging"]

LOGGER_ROOT = "jcfa"

# Extras with these names are redacted before they reach a handler
SENSITIVE_KEYS = {
    "password", "token", "secret", "apikey", "api_key", "api_token",
    "authorization", "credential", "auth", "bearer",
}

# Attributes every LogRecord carries; anything else arrived through extra=
_STANDARD_FIELDS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}


def _extras(record: logging.LogRecord) -> dict:
    return {
        k: ("[REDACTED]" if k.lower() in SENSITIVE_KEYS else v)
        for k, v in record.__dict__.items()
        if k not in _STANDARD_FIELDS and not k.startswith("_")
    }


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter.

    Outputs one JSON object per line with:
    - timestamp: UTC ISO 8601 format with 'Z' suffix
    - level: Log level name (INFO, ERROR, etc.)
    - logger: Logger name (jcfa hierarchy)
    - message: Log message (an event name such as ``bulk_create_chunk``)
    - context: Extras dict merged from LogRecord attributes

    Sensitive keys (token, api_token, authorization, ...) are redacted.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = _extras(record)
        if extras:
            log_data["context"] = extras

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter, extras appended as key=value pairs."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extras(record)
        if extras:
            pairs = " ".join(f"{k}={v}" for k, v in sorted(extras.items()))
            line = f"{line} {pairs}"
        return line


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Configure logging for all jcfa loggers.

    Args:
        level: Optional log level override. If not provided, uses JCFA_LOG_LEVEL
               environment variable (default: WARNING).
        fmt: Optional format override ("text" or "json"). If not provided, uses
             JCFA_LOG_FORMAT environment variable (default: text).

    Calling this again only adjusts level and formatter; it never stacks handlers.
    """
    if level is None:
        level = os.getenv("JCFA_LOG_LEVEL", "WARNING")

    log_level = getattr(logging, level.upper(), logging.WARNING)

    log_format = (fmt or os.getenv("JCFA_LOG_FORMAT", "text")).lower()
    formatter = StructuredFormatter() if log_format == "json" else TextFormatter()

    logger = logging.getLogger(LOGGER_ROOT)
    logger.setLevel(log_level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setFormatter(formatter)

    logger.propagate = False
