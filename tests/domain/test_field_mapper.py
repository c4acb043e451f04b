"""Unit tests for the field mapper."""

from history_reconciler.domain.category_schema import get_category_schema
from history_reconciler.domain.services.field_mapper import consumed_keys, map_field, map_fields


class TestMapField:
    """Test suite for single-field alias resolution."""

    def test_first_present_alias_wins(self):
        item = {"diagnosis": "flu", "conditionName": "asthma"}
        assert map_field(item, ["name", "conditionName", "diagnosis"]) == "asthma"

    def test_absent_aliases_give_none(self):
        assert map_field({"other": 1}, ["name", "conditionName"]) is None

    def test_present_none_stops_search(self):
        item = {"name": None, "conditionName": "asthma"}
        assert map_field(item, ["name", "conditionName"]) is None


class TestMapFields:
    """Test suite for whole-table mapping."""

    def test_produces_every_canonical_field(self):
        schema = get_category_schema("conditions")
        mapped = map_fields({"conditionName": "Asthma", "conditionStatus": "ACTIVE"}, schema.field_aliases)
        assert mapped == {
            "name": "Asthma",
            "diagnosedDate": None,
            "status": "ACTIVE",
            "startDate": None,
            "endDate": None,
        }

    def test_empty_table_maps_nothing(self):
        assert map_fields({"a": 1}, {}) == {}

    def test_consumed_keys(self):
        keys = consumed_keys({"name": ("name", "allergyName"), "severity": ("allergySeverity",)})
        assert keys == frozenset({"name", "allergyName", "allergySeverity"})
