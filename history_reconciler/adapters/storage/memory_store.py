"""In-Memory History Store.

Storage adapter keeping one canonical history per patient in process memory.

Histories are stored as serialized (wire-shaped) copies and rebuilt on every
read, so callers can never mutate a stored history through a reference they
hold.

Architecture:
    - Implements HistoryStoragePort
    - Thread-safe: a single lock guards the backing dict
    - Failures are returned as Result objects, not raised
"""

import copy
import logging
import threading
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from history_reconciler.domain.health_history import PatientHealthHistory
from history_reconciler.domain.ports import HistoryStoragePort, Result

logger = logging.getLogger(__name__)


class InMemoryHistoryStore(HistoryStoragePort):
    """Dict-backed storage for canonical histories.

    Example Usage:
        ```python
        store = InMemoryHistoryStore()
        result = store.save(history)
        if result.is_success():
            stored = store.get(result.value)
        ```
    """

    def __init__(self):
        self._histories: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._closed = False

    def get(self, patient_id: str) -> Optional[PatientHealthHistory]:
        """Return a fresh copy of the stored history, or None."""
        with self._lock:
            payload = self._histories.get(patient_id)
            if payload is None:
                return None
            payload = copy.deepcopy(payload)
        return PatientHealthHistory.model_validate(payload)

    def save(self, history: PatientHealthHistory) -> Result[str]:
        """Insert or replace a patient's history.

        Returns:
            Result[str]: Success with the patient id, or failure if the store
            is closed or the history cannot be serialized
        """
        if self._closed:
            return Result.failure_result(
                "History store is closed",
                error_type="StorageError",
                error_details={"patient_id": history.patient_id},
            )

        try:
            payload = copy.deepcopy(history.to_payload())
        except (TypeError, PydanticValidationError) as e:
            logger.error(f"Failed to serialize history for {history.patient_id}: {str(e)}")
            return Result.failure_result(
                e,
                error_type="StorageError",
                error_details={"patient_id": history.patient_id},
            )

        with self._lock:
            replaced = history.patient_id in self._histories
            self._histories[history.patient_id] = payload

        logger.debug(f"{'Replaced' if replaced else 'Inserted'} history for {history.patient_id}")
        return Result.success_result(history.patient_id)

    def list_patient_ids(self) -> List[str]:
        with self._lock:
            return list(self._histories)

    def close(self) -> None:
        """Refuse further writes; stored histories stay readable."""
        self._closed = True
