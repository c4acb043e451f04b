"""Unit tests for structured logging configuration."""

import io
import json
import logging
import sys

import pytest

from history_reconciler.infrastructure.logging_config import StructuredFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStructuredFormatter:
    """Test suite for StructuredFormatter."""

    def test_formats_json_with_extra_fields(self):
        record = logging.LogRecord(
            name="history_reconciler.test", level=logging.WARNING, pathname=__file__, lineno=10,
            msg="Data quality issues detected", args=(), exc_info=None,
        )
        record.extra_fields = {"diagnostic_kind": "quality_issues", "details": {"issues": ["x"]}}
        data = json.loads(StructuredFormatter().format(record))
        assert data["level"] == "WARNING"
        assert data["logger"] == "history_reconciler.test"
        assert data["message"] == "Data quality issues detected"
        assert data["diagnostic_kind"] == "quality_issues"
        assert data["details"] == {"issues": ["x"]}
        assert data["timestamp"].endswith("Z")

    def test_includes_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.getLogger("t").makeRecord(
                "t", logging.ERROR, __file__, 1, "failed", (), exc_info=sys.exc_info(),
            )
        data = json.loads(StructuredFormatter().format(record))
        assert "ValueError: bad" in data["exception"]


class TestSetupLogging:
    """Test suite for setup_logging."""

    def test_json_handler(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging(use_json=True, log_level="debug", stream=stream)
        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        logging.getLogger("history_reconciler.test").info("hello")
        assert json.loads(stream.getvalue().strip())["message"] == "hello"

    def test_plain_handler_and_unknown_level(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging(log_level="nonsense", stream=stream)
        assert restore_root_logger.level == logging.INFO
        logging.getLogger("history_reconciler.test").warning("careful")
        assert " - WARNING - careful" in stream.getvalue()
