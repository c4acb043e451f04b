"""Tests for the HealthHistoryService application service."""

import threading
from unittest.mock import Mock

import pytest

from history_reconciler.adapters.storage import InMemoryHistoryStore
from history_reconciler.domain.enums import ChangeType
from history_reconciler.domain.health_history import PatientHealthHistory
from history_reconciler.domain.ports import (
    HistoryNotFoundError,
    HistorySourcePort,
    MalformedReconciliationInputError,
    Result,
    StorageError,
    UnsupportedVersionError,
    ValidationError,
)
from history_reconciler.infrastructure.diagnostics_collector import DiagnosticsCollector
from history_reconciler.service import HealthHistoryService

RAW_PAYLOAD = {
    "patientId": "P001",
    "healthHistory": {
        "conditions": [{"conditionName": " Asthma ", "conditionStatus": "ACTIVE"}],
        "medications": [{"medicationName": "Metformin", "medicationDosage": "0.5 g"}],
    },
}


class StaticSource(HistorySourcePort):
    def __init__(self, payloads):
        self.payloads = payloads
        self.calls = 0

    def fetch(self, patient_id):
        self.calls += 1
        return self.payloads[patient_id]


@pytest.fixture
def store():
    return InMemoryHistoryStore()


@pytest.fixture
def service(store):
    return HealthHistoryService(store, diagnostics=DiagnosticsCollector(), parser_version="v1")


def review_payload(**categories):
    payload = {"conditions": [], "allergies": [], "procedures": [], "medications": []}
    payload.update(categories)
    return {"patientId": "P001", "healthHistory": payload}


class TestHealthHistoryService:
    """Test suite for HealthHistoryService."""

    def test_ingest_parses_and_saves(self, service, store):
        history = service.ingest(RAW_PAYLOAD)
        assert history.records("conditions")[0].name == "asthma"
        assert store.get("P001") == history

    def test_ingest_invalid_payload(self, service, store):
        with pytest.raises(ValidationError):
            service.ingest({"healthHistory": {}})
        assert store.list_patient_ids() == []

    def test_get_history_from_storage(self, service):
        service.ingest(RAW_PAYLOAD)
        assert service.get_history("P001").records("medications")[0].dosage == "500mg"

    def test_get_history_fetches_once(self, store):
        source = StaticSource({"P001": RAW_PAYLOAD})
        service = HealthHistoryService(store, source=source, diagnostics=DiagnosticsCollector())
        first = service.get_history("P001")
        second = service.get_history("P001")
        assert first == second
        assert source.calls == 1
        assert store.list_patient_ids() == ["P001"]

    def test_get_history_without_source(self, service):
        with pytest.raises(HistoryNotFoundError) as exc_info:
            service.get_history("P404")
        assert exc_info.value.patient_id == "P404"

    def test_submit_review(self, service, store):
        service.ingest(RAW_PAYLOAD)
        outcome = service.submit_review("P001", review_payload(
            conditions=[{"name": "asthma", "status": "resolved"}],
            medications=[{"name": "metformin", "dosage": "999mg"}],
            allergies=[{"name": "shellfish"}],
        ))
        assert outcome.history.records("conditions")[0].status == "resolved"
        assert outcome.history.records("medications")[0].dosage == "500mg"
        assert store.get("P001") == outcome.history

        updates = [c for c in outcome.changes if c.change_type == ChangeType.UPDATE]
        inserts = [c for c in outcome.changes if c.change_type == ChangeType.INSERT]
        assert [(c.record_key, c.field_name) for c in updates] == [("asthma", "status")]
        assert [(c.category, c.new_value) for c in inserts] == [("allergies", "shellfish")]
        assert all(c.reconciliation_id == outcome.reconciliation_id for c in outcome.changes)

    def test_submit_review_without_history(self, service):
        with pytest.raises(HistoryNotFoundError):
            service.submit_review("P001", review_payload())

    def test_malformed_review_leaves_history_untouched(self, service, store):
        stored = service.ingest(RAW_PAYLOAD)
        with pytest.raises(MalformedReconciliationInputError):
            service.submit_review("P001", {"conditions": []})
        assert store.get("P001") == stored

    def test_storage_failure_raises(self):
        storage = Mock()
        storage.get.return_value = None
        storage.save.return_value = Result.failure_result("disk full", error_type="StorageError")
        service = HealthHistoryService(storage, diagnostics=DiagnosticsCollector())
        with pytest.raises(StorageError) as exc_info:
            service.ingest(RAW_PAYLOAD)
        assert "disk full" in str(exc_info.value)
        assert exc_info.value.patient_id == "P001"

    def test_unsupported_parser_version(self, store):
        with pytest.raises(UnsupportedVersionError):
            HealthHistoryService(store, parser_version="v99")

    def test_concurrent_reviews_are_serialized(self, service, store):
        service.ingest({"patientId": "P001", "healthHistory": {}})
        errors = []

        def submit(index):
            try:
                service.submit_review("P001", review_payload(allergies=[{"name": f"allergen-{index}"}]))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=submit, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        names = sorted(r.name for r in store.get("P001").records("allergies"))
        assert names == sorted(f"allergen-{i}" for i in range(8))

    def test_same_lock_per_patient(self, service):
        assert service._lock_for("P001") is service._lock_for("P001")
        assert service._lock_for("P001") is not service._lock_for("P002")

    def test_returns_history_type(self, service):
        assert isinstance(service.ingest(RAW_PAYLOAD), PatientHealthHistory)
