"""Unit tests for DiagnosticsCollector and the logging sink."""

import logging
from unittest.mock import Mock

from history_reconciler.domain.diagnostics import DiagnosticEvent, LoggingDiagnosticsSink
from history_reconciler.domain.enums import DiagnosticKind
from history_reconciler.infrastructure.diagnostics_collector import DiagnosticsCollector


def make_event(kind=DiagnosticKind.NEW_CATEGORY, category="vaccines"):
    return DiagnosticEvent(kind=kind, message="New category encountered", patient_id="P001", category=category)


class TestDiagnosticsCollector:
    """Test suite for DiagnosticsCollector."""

    def test_init(self):
        collector = DiagnosticsCollector()
        assert collector.get_event_count() == 0
        assert not collector.has_events()

    def test_collects_in_order(self):
        collector = DiagnosticsCollector()
        first = make_event()
        second = make_event(kind=DiagnosticKind.QUALITY_ISSUES, category=None)
        collector.emit(first)
        collector.emit(second)
        assert collector.get_events() == [first, second]
        assert collector.get_events_by_kind(DiagnosticKind.QUALITY_ISSUES) == [second]

    def test_get_events_returns_copy(self):
        collector = DiagnosticsCollector()
        collector.emit(make_event())
        collector.get_events().clear()
        assert collector.get_event_count() == 1

    def test_clear(self):
        collector = DiagnosticsCollector()
        collector.emit(make_event())
        collector.clear()
        assert not collector.has_events()

    def test_forwards_events(self):
        delegate = Mock()
        collector = DiagnosticsCollector(forward_to=delegate)
        event = make_event()
        collector.emit(event)
        delegate.emit.assert_called_once_with(event)


class TestLoggingDiagnosticsSink:
    """Test suite for the default logging sink."""

    def test_logs_with_extra_fields(self, caplog):
        sink = LoggingDiagnosticsSink(logging.getLogger("test.diagnostics"))
        with caplog.at_level(logging.INFO, logger="test.diagnostics"):
            sink.emit(make_event())
        record = caplog.records[0]
        assert record.levelno == logging.INFO
        assert record.getMessage() == "New category encountered"
        assert record.extra_fields["diagnostic_kind"] == "new_category"
        assert record.extra_fields["category"] == "vaccines"

    def test_failures_log_at_error(self, caplog):
        sink = LoggingDiagnosticsSink(logging.getLogger("test.diagnostics"))
        with caplog.at_level(logging.INFO, logger="test.diagnostics"):
            sink.emit(make_event(kind=DiagnosticKind.PARSE_FAILURE, category=None))
        assert caplog.records[0].levelno == logging.ERROR
