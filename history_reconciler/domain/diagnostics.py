"""Diagnostic events and the default logging sink.

The parser and reconciler report non-fatal anomalies and failures through an
injected ``DiagnosticsSink``. When nothing is injected, events go to the
standard library logger with their fields attached under ``extra_fields`` so
that the structured JSON formatter can emit them.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from history_reconciler.domain.enums import DiagnosticKind
from history_reconciler.domain.ports import DiagnosticsSink

logger = logging.getLogger(__name__)

_LEVELS = {
    DiagnosticKind.NEW_CATEGORY: logging.INFO,
    DiagnosticKind.QUALITY_ISSUES: logging.WARNING,
    DiagnosticKind.ITEM_REJECTED: logging.WARNING,
    DiagnosticKind.REVIEW_ENTRY_IGNORED: logging.WARNING,
    DiagnosticKind.PARSE_FAILURE: logging.ERROR,
    DiagnosticKind.RECONCILIATION_FAILURE: logging.ERROR,
}


class DiagnosticEvent(BaseModel):
    """A single structured diagnostic.

    Parameters:
        kind: What happened
        message: Human-readable summary
        patient_id: Patient the event concerns, when known
        category: Category the event concerns, when applicable
        details: Additional structured context (issue list, error text, ...)
        emitted_at: Timestamp of the event
    """

    kind: DiagnosticKind = Field(..., description="Event kind")
    message: str = Field(..., description="Human-readable summary")
    patient_id: Optional[str] = Field(None, description="Patient identifier")
    category: Optional[str] = Field(None, description="Record category")
    details: Dict[str, Any] = Field(default_factory=dict, description="Structured context")
    emitted_at: datetime = Field(default_factory=datetime.now, description="Emission timestamp")

    def to_log_dict(self) -> Dict[str, Any]:
        """Flatten to a JSON-serializable dict for structured logging."""
        return {
            "diagnostic_kind": self.kind.value,
            "patient_id": self.patient_id,
            "category": self.category,
            "details": self.details,
            "emitted_at": self.emitted_at.isoformat(),
        }


class LoggingDiagnosticsSink(DiagnosticsSink):
    """Sink that writes every event to a standard library logger."""

    def __init__(self, target: Optional[logging.Logger] = None):
        self._logger = target or logger

    def emit(self, event: DiagnosticEvent) -> None:
        self._logger.log(
            _LEVELS.get(event.kind, logging.INFO),
            event.message,
            extra={"extra_fields": event.to_log_dict()},
        )
