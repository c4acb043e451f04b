"""Domain enumerations.

Closed vocabularies shared by the parser, the reconciler and the diagnostics
channel. All enums subclass ``str`` so they compare equal to their wire values.
"""

from enum import Enum


class RecordCategory(str, Enum):
    """Known health-history categories.

    Source payloads may carry additional categories; those are kept under
    their original key and are not members of this enum.
    """

    CONDITIONS = "conditions"
    ALLERGIES = "allergies"
    PROCEDURES = "procedures"
    MEDICATIONS = "medications"


class Provenance(str, Enum):
    """Who is the authority for a field's value during reconciliation.

    OBJECTIVE: clinician-sourced fact, patient edits are ignored.
    SUBJECTIVE: patient-reported, the patient's value always wins.
    PATIENT_EXTENDABLE: the patient's value wins when provided, otherwise
        the stored value is kept.
    """

    OBJECTIVE = "objective"
    SUBJECTIVE = "subjective"
    PATIENT_EXTENDABLE = "patient-extendable"


class DiagnosticKind(str, Enum):
    """Kinds of events emitted on the diagnostics channel."""

    NEW_CATEGORY = "new_category"
    QUALITY_ISSUES = "quality_issues"
    ITEM_REJECTED = "item_rejected"
    PARSE_FAILURE = "parse_failure"
    RECONCILIATION_FAILURE = "reconciliation_failure"
    REVIEW_ENTRY_IGNORED = "review_entry_ignored"


class ChangeType(str, Enum):
    """Field-level change types recorded by the change detector."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
