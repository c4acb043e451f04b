"""Domain Services.

This package contains the normalization-and-reconciliation engine:

    - field_mapper: alias resolution to canonical field names
    - normalizer: per-field canonicalization rules
    - deduplicator: identity-key collapsing
    - quality_checker: non-fatal data-quality report
    - history_parser: versioned raw payload -> PatientHealthHistory
    - reconciler: provenance-aware merge of patient revisions
    - change_detector: field-level audit of a reconciliation

Modules are imported directly (``from ...services.reconciler import ...``);
the record models import the normalizer, so this package stays import-free.
"""
