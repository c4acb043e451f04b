"""Unit tests for ChangeDetector service."""

import numpy as np
import pandas as pd

from history_reconciler.domain.cdc_models import ChangeEvent
from history_reconciler.domain.enums import ChangeType
from history_reconciler.domain.health_history import PatientHealthHistory
from history_reconciler.domain.services.change_detector import ChangeDetector


def make_history(**categories):
    return PatientHealthHistory.model_validate({"patientId": "P001", "healthHistory": categories})


class TestChangeDetector:
    """Test suite for ChangeDetector service."""

    def test_init(self):
        detector = ChangeDetector(reconciliation_id="rec-123", source="patient_review")
        assert detector.reconciliation_id == "rec-123"
        assert detector.source == "patient_review"

    def test_no_changes(self):
        history = make_history(conditions=[{"name": "asthma", "status": "active"}])
        assert ChangeDetector().detect_history_changes(history, history) == []

    def test_update_events_for_changed_fields(self):
        original = make_history(conditions=[
            {"name": "asthma", "status": "active"},
            {"name": "diabetes", "status": "active"},
        ])
        reconciled = make_history(conditions=[
            {"name": "asthma", "status": "resolved"},
            {"name": "diabetes", "status": "active"},
        ])
        events = ChangeDetector(reconciliation_id="rec-1").detect_history_changes(original, reconciled)
        assert len(events) == 1
        event = events[0]
        assert event.patient_id == "P001"
        assert event.category == "conditions"
        assert event.record_key == "asthma"
        assert event.field_name == "status"
        assert event.old_value == "active"
        assert event.new_value == "resolved"
        assert event.change_type == ChangeType.UPDATE
        assert event.reconciliation_id == "rec-1"

    def test_added_passthrough_field_is_an_update(self):
        original = make_history(medications=[{"name": "metformin", "dosage": "500mg"}])
        reconciled = make_history(medications=[
            {"name": "metformin", "dosage": "500mg", "sideEffects": ["nausea"]},
        ])
        events = ChangeDetector().detect_history_changes(original, reconciled)
        assert len(events) == 1
        assert events[0].field_name == "sideEffects"
        assert events[0].old_value is None
        assert events[0].new_value == ["nausea"]

    def test_insert_events_for_new_records(self):
        original = make_history(allergies=[{"name": "pollen"}])
        reconciled = make_history(allergies=[
            {"name": "pollen"},
            {"name": "Shellfish", "reaction": "swelling"},
        ])
        events = ChangeDetector().detect_history_changes(original, reconciled)
        assert {(e.field_name, e.new_value) for e in events} == {
            ("name", "Shellfish"),
            ("reaction", "swelling"),
        }
        assert all(e.change_type == ChangeType.INSERT for e in events)
        assert all(e.record_key == "shellfish" for e in events)

    def test_insert_into_empty_category(self):
        original = make_history()
        reconciled = make_history(procedures=[{"name": "appendectomy", "date": "2019-03-04"}])
        events = ChangeDetector().detect_history_changes(original, reconciled)
        assert len(events) == 2
        assert {e.category for e in events} == {"procedures"}

    def test_unrecognized_categories_are_ignored(self):
        original = make_history(vaccines=[{"name": "tetanus"}])
        reconciled = make_history(vaccines=[{"name": "tetanus", "lot": "A1"}])
        assert ChangeDetector().detect_history_changes(original, reconciled) == []

    def test_detect_changes_vectorized_nan_handling(self):
        detector = ChangeDetector()
        merged_df = pd.DataFrame({
            'key': ['a', 'b'],
            'status_old': ['active', np.nan],
            'status_new': ['active', 'resolved'],
            'reaction_old': [np.nan, 'hives'],
            'reaction_new': [np.nan, 'hives'],
            '_merge': ['both', 'both'],
        })
        changes_df = detector.detect_changes_vectorized(merged_df, 'conditions', 'key', ['status', 'reaction'])
        assert len(changes_df) == 1
        assert changes_df.iloc[0]['record_key'] == 'b'
        assert changes_df.iloc[0]['old_value'] is None
        assert changes_df.iloc[0]['new_value'] == 'resolved'

    def test_detect_changes_vectorized_lists(self):
        detector = ChangeDetector()
        merged_df = pd.DataFrame({
            'key': ['a'],
            'sideEffects_old': [['nausea']],
            'sideEffects_new': [['nausea', 'dizziness']],
        })
        changes_df = detector.detect_changes_vectorized(merged_df, 'medications', 'key', ['sideEffects'])
        assert len(changes_df) == 1

    def test_changes_df_to_events_empty(self):
        assert ChangeDetector().changes_df_to_events(pd.DataFrame()) == []

    def test_null_to_value_update_reports_none(self):
        original = make_history(medications=[
            {"name": "a", "dosage": "5mg", "frequency": None},
            {"name": "b", "frequency": None},
        ])
        reconciled = make_history(medications=[
            {"name": "a", "dosage": "5mg", "frequency": None},
            {"name": "b", "frequency": "daily"},
        ])
        events = ChangeDetector().detect_history_changes(original, reconciled)
        assert len(events) == 1
        assert events[0].record_key == "b"
        assert events[0].old_value is None
        assert events[0].new_value == "daily"

    def test_insert_keeps_int_alongside_sparse_column(self):
        original = make_history()
        reconciled = make_history(medications=[{"name": "c", "refills": 3}, {"name": "d"}])
        events = ChangeDetector().detect_history_changes(original, reconciled)
        refills = [e for e in events if e.field_name == "refills"]
        assert len(refills) == 1
        assert refills[0].new_value == 3
        assert isinstance(refills[0].new_value, int)
        assert {(e.record_key, e.field_name) for e in events} == {("c", "name"), ("c", "refills"), ("d", "name")}


class TestChangeEvent:
    """Test suite for ChangeEvent serialization."""

    def test_to_audit_dict(self):
        event = ChangeEvent(
            patient_id="P001",
            category="medications",
            record_key="metformin",
            field_name="sideEffects",
            old_value=None,
            new_value={"b": 2, "a": 1},
            change_type=ChangeType.UPDATE,
            reconciliation_id="rec-1",
            source="patient_review",
        )
        audit = event.to_audit_dict()
        assert audit['old_value'] is None
        assert audit['new_value'] == '{"a": 1, "b": 2}'
        assert audit['change_type'] == "UPDATE"
        assert audit['change_id']

    def test_nan_serializes_to_none(self):
        event = ChangeEvent(
            category="conditions", record_key="x", field_name="status",
            old_value=float("nan"), new_value="active", change_type=ChangeType.UPDATE,
        )
        assert event.to_audit_dict()['old_value'] is None
