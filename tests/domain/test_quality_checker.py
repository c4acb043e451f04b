"""Unit tests for the data quality checker."""

from datetime import datetime, timezone

from history_reconciler.domain.health_history import PatientHealthHistory
from history_reconciler.domain.services.quality_checker import (
    DEFAULT_CHECKS,
    QualityChecker,
    check_future_diagnosis_dates,
    check_missing_names,
)

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0)


def make_history(**categories):
    return PatientHealthHistory.model_validate({"patientId": "P001", "healthHistory": categories})


class TestQualityChecker:
    """Test suite for QualityChecker."""

    def test_clean_history_has_no_issues(self):
        history = make_history(
            conditions=[{"name": "asthma", "diagnosedDate": "2020-01-01"}],
            allergies=[{"name": "pollen"}],
        )
        assert QualityChecker(clock=lambda: FIXED_NOW).check(history) == []

    def test_missing_name_reported_per_record(self):
        history = make_history(
            conditions=[{"status": "active"}, {"name": "  "}],
            medications=[{"dosage": "5mg"}],
        )
        issues = QualityChecker(clock=lambda: FIXED_NOW).check(history)
        assert issues == [
            "Missing name in conditions",
            "Missing name in conditions",
            "Missing name in medications",
        ]

    def test_numeric_name_is_not_missing(self):
        history = make_history(allergies=[{"name": 42}])
        assert QualityChecker(clock=lambda: FIXED_NOW).check(history) == []

    def test_future_diagnosis_date(self):
        history = make_history(conditions=[
            {"name": "flu", "diagnosedDate": "2024-06-02"},
            {"name": "cold", "diagnosedDate": "2024-06-01"},
        ])
        issues = QualityChecker(clock=lambda: FIXED_NOW).check(history)
        assert issues == ["Future diagnosed date for condition: flu"]

    def test_future_diagnosis_with_aware_clock(self):
        history = make_history(conditions=[{"name": "flu", "diagnosedDate": "2999-01-01"}])
        aware_now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        assert check_future_diagnosis_dates(history, aware_now) == [
            "Future diagnosed date for condition: flu"
        ]

    def test_end_before_start(self):
        history = make_history(medications=[
            {"name": "metformin", "startDate": "2022-05-01", "endDate": "2022-01-01"},
        ])
        issues = QualityChecker(clock=lambda: FIXED_NOW).check(history)
        assert issues == ["End date before start date in medications: metformin"]

    def test_failing_check_does_not_raise(self, caplog):
        def broken(history, now):
            raise RuntimeError("boom")

        history = make_history(conditions=[{"status": "active"}])
        checker = QualityChecker(checks=[broken, check_missing_names], clock=lambda: FIXED_NOW)
        assert checker.check(history) == ["Missing name in conditions"]
        failures = [r for r in caplog.records if "Quality check broken failed" in r.getMessage()]
        assert len(failures) == 1
        assert failures[0].exc_info is not None
        assert failures[0].exc_info[0] is RuntimeError

    def test_default_checks_include_required_checks(self):
        assert check_missing_names in DEFAULT_CHECKS
        assert check_future_diagnosis_dates in DEFAULT_CHECKS
