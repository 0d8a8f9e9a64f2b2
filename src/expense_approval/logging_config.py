"""Structured JSON logging for the expense approval workflow."""

from __future__ import annotations

import json
import logging
import sys
import threading
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

__all__ = [
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

_LOGGER_PREFIX = "expense_approval"

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Fields passed through ``extra=`` land on the record itself.
        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the expense_approval namespace."""

    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_installed: logging.Handler | None = None
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Configure the package logger hierarchy (idempotent).

    Raises ``ValueError`` for an unknown level name, leaving logging
    unconfigured.
    """

    global _installed
    with _lock:
        if _installed is not None:
            return

        package_logger = logging.getLogger(_LOGGER_PREFIX)
        package_logger.setLevel(level.upper() if isinstance(level, str) else level)
        package_logger.propagate = False

        target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())
        package_logger.addHandler(target)
        _installed = target


def reset_logging() -> None:
    """Remove the handler installed by ``configure_logging``."""

    global _installed
    package_logger = logging.getLogger(_LOGGER_PREFIX)
    with _lock:
        if _installed is not None:
            package_logger.removeHandler(_installed)
            _installed = None
        package_logger.setLevel(logging.NOTSET)
        package_logger.propagate = True
