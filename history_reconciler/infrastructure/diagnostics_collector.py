"""Diagnostics Collector.

Buffers diagnostic events emitted by the parser and reconciler so callers
(the CLI, tests, a batch job) can inspect or flush them after a run.

Architecture:
    - Infrastructure layer component implementing the DiagnosticsSink port
    - Optionally forwards each event to another sink (e.g. the logging sink)
    - Thread-safe: the application service may be shared across threads
"""

import logging
import threading
from typing import List, Optional

from history_reconciler.domain.diagnostics import DiagnosticEvent
from history_reconciler.domain.enums import DiagnosticKind
from history_reconciler.domain.ports import DiagnosticsSink

logger = logging.getLogger(__name__)


class DiagnosticsCollector(DiagnosticsSink):
    """In-memory buffer of diagnostic events.

    Example Usage:
        ```python
        collector = DiagnosticsCollector(forward_to=LoggingDiagnosticsSink())
        parser = HistoryParser(diagnostics=collector)
        parser.parse(raw)
        for event in collector.get_events_by_kind(DiagnosticKind.NEW_CATEGORY):
            print(event.category)
        ```
    """

    def __init__(self, forward_to: Optional[DiagnosticsSink] = None):
        """Initialize the collector.

        Parameters:
            forward_to: Sink that also receives every event
        """
        self._events: List[DiagnosticEvent] = []
        self._lock = threading.Lock()
        self._forward_to = forward_to

    def emit(self, event: DiagnosticEvent) -> None:
        with self._lock:
            self._events.append(event)
        logger.debug(f"Collected diagnostic event: {event.kind.value}")
        if self._forward_to is not None:
            self._forward_to.emit(event)

    def get_events(self) -> List[DiagnosticEvent]:
        """Get all collected events, oldest first."""
        with self._lock:
            return self._events.copy()

    def get_events_by_kind(self, kind: DiagnosticKind) -> List[DiagnosticEvent]:
        with self._lock:
            return [event for event in self._events if event.kind == kind]

    def clear(self) -> None:
        """Clear all collected events."""
        with self._lock:
            self._events.clear()

    def get_event_count(self) -> int:
        with self._lock:
            return len(self._events)

    def has_events(self) -> bool:
        return self.get_event_count() > 0
