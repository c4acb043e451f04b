"""Domain Core.

Canonical models, the category schema table, ports and the error hierarchy.
Services live in ``history_reconciler.domain.services``.
"""

from history_reconciler.domain.enums import ChangeType, DiagnosticKind, Provenance, RecordCategory
from history_reconciler.domain.health_history import PatientHealthHistory
from history_reconciler.domain.records import (
    AllergyRecord,
    ConditionRecord,
    GenericRecord,
    HealthRecord,
    MedicationRecord,
    ProcedureRecord,
)

__all__ = [
    "AllergyRecord",
    "ChangeType",
    "ConditionRecord",
    "DiagnosticKind",
    "GenericRecord",
    "HealthRecord",
    "MedicationRecord",
    "PatientHealthHistory",
    "ProcedureRecord",
    "Provenance",
    "RecordCategory",
]
