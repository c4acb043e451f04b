"""Reconciler - Provenance-Aware Merge of Patient Revisions.

Merges a stored canonical history with the patient's edited copy. For every
stored record matched by identity key in the revision, each field is merged
according to its provenance in the category policy table:

    - OBJECTIVE: the stored value is kept, whatever the patient submitted
    - SUBJECTIVE: the patient's value wins
    - PATIENT_EXTENDABLE: the patient's value wins when provided, otherwise
      the stored value is kept

Records the patient added are appended verbatim. Records are never deleted.

Security Impact:
    - Clinician-sourced facts (dates, diagnoses, dosages) cannot be altered
      by a patient submission
    - Malformed inputs fail with MalformedReconciliationInputError before
      anything is merged

Architecture:
    - Pure domain service; diagnostics go to an injected sink
    - Merge policy is read from the static category schema table
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from history_reconciler.domain.category_schema import KNOWN_CATEGORIES, CategorySchema, get_category_schema
from history_reconciler.domain.diagnostics import DiagnosticEvent, LoggingDiagnosticsSink
from history_reconciler.domain.enums import DiagnosticKind, Provenance
from history_reconciler.domain.health_history import PatientHealthHistory
from history_reconciler.domain.ports import DiagnosticsSink, MalformedReconciliationInputError
from history_reconciler.domain.records import HealthRecord, identity_key

logger = logging.getLogger(__name__)

PatientHealthHistoryLike = Union[PatientHealthHistory, Mapping[str, Any]]
RecordDict = Dict[str, Any]


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of a reconciliation.

    Attributes:
        history: The reconciled canonical history
        added: Category -> names of records the patient introduced
        ignored_entries: Patient records skipped because they had no name
    """

    history: PatientHealthHistory
    added: Dict[str, List[str]] = field(default_factory=dict)
    ignored_entries: int = 0


def is_provided(value: Any) -> bool:
    """True unless the value is None or a blank string."""
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def merge_record(schema: CategorySchema, original: RecordDict, reviewed: Mapping[str, Any]) -> RecordDict:
    """Merge one stored record with its patient-reviewed counterpart.

    Fields absent from the policy table are objective: the stored record's
    keys and values are the starting point and only overridable fields are
    touched.

    Parameters:
        schema: Category schema holding the provenance table
        original: Stored record (wire-shaped dict)
        reviewed: Patient's version of the same record

    Returns:
        Merged record dict
    """
    merged = dict(original)
    for field_name, provenance in schema.overridable_fields().items():
        if provenance is Provenance.SUBJECTIVE:
            merged[field_name] = reviewed.get(field_name)
        elif provenance is Provenance.PATIENT_EXTENDABLE:
            patient_value = reviewed.get(field_name)
            if is_provided(patient_value):
                merged[field_name] = patient_value
    return merged


class Reconciler:
    """Merges patient revisions into stored canonical histories.

    Example Usage:
        ```python
        reconciler = Reconciler()
        updated = reconciler.reconcile(stored_history, {
            "conditions": [{"name": "asthma", "status": "resolved"}],
            "allergies": [{"name": "shellfish"}],
            "procedures": [],
            "medications": [],
        })
        ```
    """

    def __init__(self, diagnostics: Optional[DiagnosticsSink] = None):
        """Initialize the reconciler.

        Parameters:
            diagnostics: Sink for diagnostic events (defaults to logging)
        """
        self.diagnostics = diagnostics or LoggingDiagnosticsSink()

    def reconcile(
        self,
        original: PatientHealthHistoryLike,
        patient_reviewed: PatientHealthHistoryLike,
    ) -> PatientHealthHistory:
        """Merge a patient revision into a stored history.

        Parameters:
            original: Stored canonical history
            patient_reviewed: Patient-edited history; a PatientHealthHistory,
                a ``{patientId, healthHistory}`` mapping or a bare mapping of
                category -> records

        Returns:
            PatientHealthHistory: New canonical history

        Raises:
            MalformedReconciliationInputError: If either input lacks the
                known category arrays
        """
        return self.reconcile_with_report(original, patient_reviewed).history

    def reconcile_with_report(
        self,
        original: PatientHealthHistoryLike,
        patient_reviewed: PatientHealthHistoryLike,
    ) -> ReconciliationResult:
        """Merge a patient revision and report what the patient added."""
        patient_id, stored = self._extract(original, "original", carry_unrecognized=True)
        _, reviewed = self._extract(patient_reviewed, "patient_reviewed")

        reconciled: Dict[str, List[RecordDict]] = dict(stored)
        added: Dict[str, List[str]] = {}
        ignored = 0

        for category in KNOWN_CATEGORIES:
            schema = get_category_schema(category)
            reviewed_by_key, category_ignored = self._index_reviewed(patient_id, category, reviewed[category])
            ignored += category_ignored

            merged: List[RecordDict] = []
            stored_keys = set()
            for record in stored[category]:
                key = identity_key(record.get("name"))
                stored_keys.add(key)
                counterpart = reviewed_by_key.get(key)
                merged.append(merge_record(schema, record, counterpart) if counterpart is not None else record)

            new_entries = [
                record for key, record in reviewed_by_key.items() if key not in stored_keys
            ]
            if new_entries:
                added[category] = [str(record.get("name")) for record in new_entries]
                merged.extend(new_entries)

            reconciled[category] = merged

        try:
            history = PatientHealthHistory.model_validate({
                "patientId": patient_id,
                "healthHistory": reconciled,
            })
        except PydanticValidationError as e:
            raise self._malformed(
                f"Reconciled history is invalid: {e.error_count()} validation error(s)",
                patient_id=patient_id,
                details={"errors": e.errors(include_url=False, include_input=False, include_context=False)},
            ) from e

        if added:
            logger.info(
                f"Patient {patient_id} added "
                f"{sum(len(names) for names in added.values())} new record(s)"
            )

        return ReconciliationResult(history=history, added=added, ignored_entries=ignored)

    def _index_reviewed(
        self,
        patient_id: Optional[str],
        category: str,
        records: List[RecordDict],
    ) -> Tuple[Dict[str, RecordDict], int]:
        """Index patient records by identity key.

        Duplicate keys collapse the way parsing does: the last value wins at
        the first occurrence's position.
        """
        indexed: Dict[str, RecordDict] = {}
        ignored = 0
        for record in records:
            key = identity_key(record.get("name"))
            if key is None:
                ignored += 1
                self.diagnostics.emit(DiagnosticEvent(
                    kind=DiagnosticKind.REVIEW_ENTRY_IGNORED,
                    message=f"Ignored patient entry without a name in {category}",
                    patient_id=patient_id,
                    category=category,
                ))
                continue
            indexed[key] = record
        return indexed, ignored

    def _extract(
        self,
        value: PatientHealthHistoryLike,
        label: str,
        carry_unrecognized: bool = False,
    ) -> Tuple[Optional[str], Dict[str, List[RecordDict]]]:
        """Return ``(patient_id, category -> record dicts)`` for an input.

        Unrecognized categories are only extracted when ``carry_unrecognized``
        is set; the patient's copies of them are ignored.

        Raises:
            MalformedReconciliationInputError: If a known category is missing,
                is not a list, or holds something other than records
        """
        if isinstance(value, PatientHealthHistory):
            return value.patient_id, {
                category: [record.to_payload() for record in records]
                for category, records in value.health_history.items()
                if carry_unrecognized or get_category_schema(category).known
            }

        if not isinstance(value, Mapping):
            raise self._malformed(
                f"{label} must be a health history mapping, got {type(value).__name__}",
                details={"input": label},
            )

        patient_id = value.get("patientId")
        categories = value["healthHistory"] if "healthHistory" in value else value
        if not isinstance(categories, Mapping):
            raise self._malformed(f"{label} healthHistory must be a mapping", details={"input": label})

        extracted: Dict[str, List[RecordDict]] = {}
        for category, items in categories.items():
            if category == "patientId" and categories is value:
                continue
            if not get_category_schema(category).known:
                if carry_unrecognized and isinstance(items, list):
                    extracted[category] = [self._as_dict(item, category, label) for item in items]
                continue
            if not isinstance(items, list):
                raise self._malformed(
                    f"{label} category '{category}' must be a list",
                    category=category,
                    details={"input": label},
                )
            extracted[category] = [self._as_dict(item, category, label) for item in items]

        missing = [category for category in KNOWN_CATEGORIES if category not in extracted]
        if missing:
            raise self._malformed(
                f"{label} is missing categories: {', '.join(missing)}",
                category=missing[0],
                details={"input": label, "missing": missing},
            )

        return (patient_id if isinstance(patient_id, str) else None), extracted

    def _as_dict(self, item: Any, category: str, label: str) -> RecordDict:
        if isinstance(item, HealthRecord):
            return item.to_payload()
        if isinstance(item, Mapping):
            return dict(item)
        raise self._malformed(
            f"{label} category '{category}' contains a non-record item",
            category=category,
            details={"input": label, "item_type": type(item).__name__},
        )

    def _malformed(
        self,
        message: str,
        category: Optional[str] = None,
        patient_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> MalformedReconciliationInputError:
        self.diagnostics.emit(DiagnosticEvent(
            kind=DiagnosticKind.RECONCILIATION_FAILURE,
            message=message,
            patient_id=patient_id,
            category=category,
            details=details or {},
        ))
        return MalformedReconciliationInputError(message, category=category, details=details)
