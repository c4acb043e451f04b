"""Health History Application Service.

Orchestrates the core around its ports: fetches raw payloads from a source,
parses them, persists canonical histories, and applies patient reviews.

Security Impact:
    - Writers are serialized per patient, so two concurrent reviews of the
      same history cannot interleave a load-reconcile-save cycle
    - Storage failures raise StorageError; a failed save is never reported
      as success
    - Every review produces field-level change events for the audit trail

Architecture:
    - Application layer: depends on domain ports, not concrete adapters
    - Parser version comes from settings unless overridden
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from history_reconciler.domain.cdc_models import ChangeEvent
from history_reconciler.domain.diagnostics import LoggingDiagnosticsSink
from history_reconciler.domain.health_history import PatientHealthHistory
from history_reconciler.domain.ports import (
    DiagnosticsSink,
    HistoryNotFoundError,
    HistorySourcePort,
    HistoryStoragePort,
    StorageError,
)
from history_reconciler.domain.services.change_detector import ChangeDetector
from history_reconciler.domain.services.history_parser import get_parser
from history_reconciler.domain.services.reconciler import PatientHealthHistoryLike, Reconciler
from history_reconciler.infrastructure.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of applying a patient review.

    Attributes:
        history: The reconciled, stored history
        changes: Field-level changes the review made
        reconciliation_id: Identifier shared by every change event
    """

    history: PatientHealthHistory
    changes: List[ChangeEvent] = field(default_factory=list)
    reconciliation_id: Optional[str] = None


class HealthHistoryService:
    """Application service over a storage port and an optional source port.

    Example Usage:
        ```python
        service = HealthHistoryService(
            storage=InMemoryHistoryStore(),
            source=JSONFileHistorySource("data/"),
        )
        history = service.get_history("P001")
        outcome = service.submit_review("P001", reviewed_payload)
        print(len(outcome.changes))
        ```
    """

    def __init__(
        self,
        storage: HistoryStoragePort,
        source: Optional[HistorySourcePort] = None,
        parser_version: Optional[str] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
    ):
        """Initialize the service.

        Parameters:
            storage: Canonical history storage
            source: Raw payload source used when nothing is stored yet
            parser_version: Parser version label (defaults to settings)
            diagnostics: Sink shared by the parser and reconciler

        Raises:
            UnsupportedVersionError: If the parser version is not registered
        """
        self.storage = storage
        self.source = source
        self.diagnostics = diagnostics or LoggingDiagnosticsSink()
        self.parser = get_parser(parser_version or settings.parser_version, diagnostics=self.diagnostics)
        self.reconciler = Reconciler(diagnostics=self.diagnostics)

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, patient_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(patient_id)
            if lock is None:
                lock = self._locks[patient_id] = threading.Lock()
            return lock

    def _save(self, history: PatientHealthHistory) -> None:
        result = self.storage.save(history)
        if result.is_failure():
            raise StorageError(
                f"Failed to save history for {history.patient_id}: {result.error}",
                patient_id=history.patient_id,
            )

    def ingest(self, raw: Any) -> PatientHealthHistory:
        """Parse a raw payload and insert or replace the stored history.

        Raises:
            ValidationError: If the payload does not have the minimal shape
            StorageError: If the history cannot be saved
        """
        history = self.parser.parse(raw)
        with self._lock_for(history.patient_id):
            self._save(history)
        logger.info(f"Ingested history for {history.patient_id}")
        return history

    def get_history(self, patient_id: str) -> PatientHealthHistory:
        """Return the stored history, fetching and parsing it on first access.

        Raises:
            HistoryNotFoundError: If nothing is stored and no source is configured
            SourceNotFoundError: If the source has no payload for the patient
            ValidationError: If the fetched payload does not have the minimal shape
            StorageError: If the parsed history cannot be saved
        """
        with self._lock_for(patient_id):
            stored = self.storage.get(patient_id)
            if stored is not None:
                return stored

            if self.source is None:
                raise HistoryNotFoundError(
                    f"No health history stored for patient {patient_id}",
                    patient_id=patient_id,
                )

            raw = self.source.fetch(patient_id)
            history = self.parser.parse(raw)
            self._save(history)

        logger.info(f"Fetched and stored history for {patient_id}")
        return history

    def submit_review(self, patient_id: str, reviewed: PatientHealthHistoryLike) -> ReviewOutcome:
        """Reconcile a patient's reviewed copy into the stored history.

        Parameters:
            patient_id: Patient whose history is reviewed
            reviewed: Patient-edited history (model or mapping)

        Returns:
            ReviewOutcome with the new history and its change events

        Raises:
            HistoryNotFoundError: If no history is stored for the patient
            MalformedReconciliationInputError: If the review is malformed
            StorageError: If the reconciled history cannot be saved
        """
        reconciliation_id = str(uuid.uuid4())

        with self._lock_for(patient_id):
            stored = self.storage.get(patient_id)
            if stored is None:
                raise HistoryNotFoundError(
                    f"No health history stored for patient {patient_id}",
                    patient_id=patient_id,
                )

            reconciled = self.reconciler.reconcile(stored, reviewed)
            changes = ChangeDetector(reconciliation_id=reconciliation_id).detect_history_changes(
                stored, reconciled
            )
            self._save(reconciled)

        logger.info(
            f"Applied review {reconciliation_id} for {patient_id}: {len(changes)} field change(s)"
        )
        return ReviewOutcome(history=reconciled, changes=changes, reconciliation_id=reconciliation_id)

    def close(self) -> None:
        self.storage.close()
