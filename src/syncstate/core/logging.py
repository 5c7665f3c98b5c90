"""
Logging setup for the syncstate package.

Modules log through ``logging.getLogger(__name__)`` and attach the sync
context with ``extra=sync_extra(...)``. The formatters here render that
context either as a trailing ``[key=value ...]`` block or as JSON fields.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO


CONTEXT_FIELDS = ("entity_type", "entity_id", "service_id", "backend")

# Marks the handler installed by configure_logging so reconfiguring replaces it
_HANDLER_NAME = "syncstate-console"


def sync_extra(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra=`` mapping, dropping unset context fields."""
    return {name: value for name, value in fields.items() if value is not None}


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Collect the sync context fields present on a log record."""
    context = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = value
    return context


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, sync context as top-level keys."""

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {}
        if self.include_timestamp:
            created = datetime.fromtimestamp(record.created, tz=timezone.utc)
            payload["timestamp"] = created.isoformat()
        payload.update(
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
        )
        payload.update(record_context(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Plain text lines with the sync context appended.

    Example:
        2024-01-01 12:00:00,000 - syncstate.binding - DEBUG - Marked synced [entity_type=User service_id=search]
    """

    def __init__(self, include_timestamp: bool = True, fmt: Optional[str] = None):
        if fmt is None:
            fmt = "%(name)s - %(levelname)s - %(message)s"
            if include_timestamp:
                fmt = "%(asctime)s - " + fmt
        super().__init__(fmt)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        suffix = " ".join(f"{name}={value}" for name, value in context.items())
        return f"{line} [{suffix}]"


def configure_logging(
    level: int = logging.INFO,
    structured: bool = False,
    include_timestamp: bool = True,
    format_string: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Attach a console handler to the ``syncstate`` logger.

    Calling this again replaces the handler it installed earlier, so the
    level and format can be changed at runtime.

    Args:
        level: Logging level for the package logger and handler
        structured: Emit JSON lines instead of human-readable text
        include_timestamp: Prefix lines with the record time
        format_string: Custom base format for human-readable output
        stream: Output stream (default: sys.stderr)

    Returns:
        The configured package logger
    """
    package_logger = logging.getLogger("syncstate")
    package_logger.setLevel(level)

    for existing in list(package_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            package_logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(level)
    if structured:
        handler.setFormatter(StructuredFormatter(include_timestamp=include_timestamp))
    else:
        handler.setFormatter(
            HumanReadableFormatter(include_timestamp=include_timestamp, fmt=format_string)
        )
    package_logger.addHandler(handler)
    return package_logger
