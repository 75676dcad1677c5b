"""Structured logging configuration for the PHI vault engine.

Modules log through ``logging.getLogger(__name__)`` and attach structured
context with ``extra={...}``. The JSON formatter lifts those extras into the
emitted record. Callers must never pass raw PHI as a message or extra value;
use :func:`phivault.infra.safe_logging.safe_log_text` for text fingerprints.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping

# Attributes present on every LogRecord; anything else came from ``extra=``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "extra_fields"}


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs JSON-structured log records."""

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_dict[key] = value

        if hasattr(record, "extra_fields"):
            log_dict.update(record.extra_fields)

        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_dict, default=str)


class StructuredLogger(logging.LoggerAdapter):
    """Logger adapter that merges default fields into every record."""

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = {"extra_fields": extra}
        return msg, kwargs


_configured = False


def configure_logging(
    level: int | str = logging.INFO,
    structured: bool = True,
) -> None:
    """Configure root logging once per process."""
    global _configured
    if _configured:
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(level if isinstance(level, int) else level.upper())

    handler = logging.StreamHandler(sys.stderr)
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    root_logger.addHandler(handler)
    _configured = True


def get_logger(name: str, **extra: Any) -> StructuredLogger:
    """Get a structured logger with optional default extra fields."""
    configure_logging()
    return StructuredLogger(logging.getLogger(name), extra)


__all__ = ["StructuredFormatter", "StructuredLogger", "configure_logging", "get_logger"]
