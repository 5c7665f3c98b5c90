"""
Unit tests for log formatters.
"""

import io
import json
import logging

from syncstate.core.logging import (
    HumanReadableFormatter,
    StructuredFormatter,
    configure_logging,
    sync_extra,
)


def make_record(message="Marked synced", **extra):
    record = logging.LogRecord(
        name="syncstate.binding",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    """Tests for the structured and human-readable formatters."""

    def test_structured_includes_context(self):
        formatter = StructuredFormatter(include_timestamp=False)
        line = formatter.format(make_record(entity_type="User", service_id="search"))

        entry = json.loads(line)
        assert entry == {
            "level": "INFO",
            "logger": "syncstate.binding",
            "message": "Marked synced",
            "entity_type": "User",
            "service_id": "search",
        }

    def test_structured_timestamp(self):
        entry = json.loads(StructuredFormatter().format(make_record()))
        assert entry["timestamp"].endswith("+00:00")

    def test_human_readable_context_suffix(self):
        formatter = HumanReadableFormatter(include_timestamp=False)
        line = formatter.format(make_record(entity_type="User", entity_id="42"))
        assert line == "syncstate.binding - INFO - Marked synced [entity_type=User entity_id=42]"

    def test_human_readable_without_context(self):
        formatter = HumanReadableFormatter(include_timestamp=False)
        assert formatter.format(make_record()) == "syncstate.binding - INFO - Marked synced"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_reconfigure_replaces_handler(self):
        package_logger = logging.getLogger("syncstate")
        saved = list(package_logger.handlers)
        try:
            stream = io.StringIO()
            configure_logging(level=logging.DEBUG, stream=io.StringIO())
            configure_logging(level=logging.INFO, structured=True, stream=stream)

            assert len(package_logger.handlers) == len(saved) + 1
            logging.getLogger("syncstate.binding").info(
                "Marked synced", extra=sync_extra(service_id="search", entity_id=None)
            )
            entry = json.loads(stream.getvalue())
            assert entry["service_id"] == "search"
            assert "entity_id" not in entry
        finally:
            package_logger.handlers = saved
            package_logger.setLevel(logging.NOTSET)
