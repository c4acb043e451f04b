"""Unit tests for the record deduplicator."""

from history_reconciler.domain.records import AllergyRecord
from history_reconciler.domain.services.deduplicator import deduplicate, record_identity


class TestDeduplicate:
    """Test suite for identity-key collapsing."""

    def test_last_occurrence_wins(self):
        records = [
            AllergyRecord.model_validate({"name": "aspirin allergy", "reaction": "hives"}),
            AllergyRecord.model_validate({"name": "aspirin allergy", "reaction": "rash"}),
        ]
        result = deduplicate(records)
        assert len(result) == 1
        assert result[0].reaction == "rash"

    def test_keeps_first_seen_position(self):
        records = [
            {"name": "a", "v": 1},
            {"name": "b", "v": 1},
            {"name": "A ", "v": 2},
        ]
        result = deduplicate(records)
        assert [r["name"] for r in result] == ["A ", "b"]
        assert result[0]["v"] == 2

    def test_distinct_keys_are_kept(self):
        records = [{"name": "a"}, {"name": "b"}, {"name": "c"}]
        assert deduplicate(records) == records

    def test_custom_key(self):
        records = [{"id": 1, "name": "x"}, {"id": 1, "name": "y"}]
        assert deduplicate(records, key=lambda r: r["id"]) == [{"id": 1, "name": "y"}]

    def test_record_identity_for_models_and_mappings(self):
        assert record_identity(AllergyRecord.model_validate({"name": " Pollen "})) == "pollen"
        assert record_identity({"name": "Pollen"}) == "pollen"
        assert record_identity({}) is None
