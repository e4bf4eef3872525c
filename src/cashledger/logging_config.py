"""Logging setup for cashledger.

Modules log through ``logging.getLogger(__name__)``; this module only
decides where records go and how they look. Records are rendered as a
single ``key=value`` line.
"""

__all__ = [
    "KeyValueFormatter",
    "configure_logging",
    "reset_logging",
]

import logging
import sys
from datetime import UTC, datetime
from typing import Any, Optional, Union

_LOGGER_PREFIX = "cashledger"

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _quote(value: Any) -> str:
    text = str(value)
    if not text or any(c.isspace() for c in text) or "=" in text or '"' in text:
        return '"' + text.replace('"', '\\"') + '"'
    return text


class KeyValueFormatter(logging.Formatter):
    """Formats each log record as one ``key=value`` line."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # Structured extra data passed with ``extra=``
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in fields:
                fields[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            fields["exc_type"] = type(record.exc_info[1]).__name__
            fields["exc_message"] = str(record.exc_info[1])

        return " ".join(f"{key}={_quote(val)}" for key, val in fields.items())


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is when the record is emitted."""

    def __init__(self, level: int = logging.NOTSET):
        super().__init__()
        self.setLevel(level)

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


def configure_logging(level: Union[int, str] = logging.WARNING, handler: Optional[logging.Handler] = None) -> None:
    """Route the cashledger logger hierarchy to one handler.

    Calling it again replaces the previous handler and level.

    Args:
        level: Level name ("DEBUG", "info", ...) or number
        handler: Handler to use instead of stderr
    """
    if isinstance(level, str):
        level_value = logging.getLevelName(level.upper())
        if not isinstance(level_value, int):
            raise ValueError(f"Unknown log level '{level}'")
        level = level_value

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.propagate = False

    h = handler if handler is not None else _StderrHandler()
    h.setFormatter(KeyValueFormatter())
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Reset logging configuration. FOR TESTING ONLY."""
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
