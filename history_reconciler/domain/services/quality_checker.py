"""Data Quality Checker.

Scans a canonical history for problems worth an operator's attention and
reports them as human-readable issue strings. Findings are never fatal: the
checker returns an empty list for a clean history and never raises.

Checks:
    - every record has a non-empty ``name``
    - no condition is diagnosed after the current moment
    - no record ends before it starts

Architecture:
    - Pure domain service; the clock is injected for deterministic tests
    - Checks are plain callables in ``DEFAULT_CHECKS``; callers may extend
      the list but the first two checks are always part of the default set
"""

import logging
from datetime import datetime, time, timezone
from typing import Callable, List, Optional, Sequence

from history_reconciler.domain.enums import RecordCategory
from history_reconciler.domain.health_history import PatientHealthHistory
from history_reconciler.domain.services.normalizer import parse_date

logger = logging.getLogger(__name__)

QualityCheck = Callable[[PatientHealthHistory, datetime], List[str]]


def check_missing_names(history: PatientHealthHistory, now: datetime) -> List[str]:
    issues = []
    for category, record in history.iter_records():
        if record.identity_key is None:
            issues.append(f"Missing name in {category}")
    return issues


def check_future_diagnosis_dates(history: PatientHealthHistory, now: datetime) -> List[str]:
    issues = []
    for record in history.records(RecordCategory.CONDITIONS.value):
        diagnosed = parse_date(getattr(record, "diagnosed_date", None))
        if diagnosed is None:
            continue
        diagnosed_at = datetime.combine(diagnosed, time.min)
        if now.tzinfo is not None:
            diagnosed_at = diagnosed_at.replace(tzinfo=timezone.utc)
        if diagnosed_at > now:
            issues.append(f"Future diagnosed date for condition: {record.name}")
    return issues


def check_date_ranges(history: PatientHealthHistory, now: datetime) -> List[str]:
    issues = []
    for category, record in history.iter_records():
        payload = record.to_payload()
        start = parse_date(payload.get("startDate"))
        end = parse_date(payload.get("endDate"))
        if start is not None and end is not None and end < start:
            issues.append(f"End date before start date in {category}: {record.name}")
    return issues


DEFAULT_CHECKS: List[QualityCheck] = [
    check_missing_names,
    check_future_diagnosis_dates,
    check_date_ranges,
]


class QualityChecker:
    """Runs a list of quality checks over a canonical history.

    Example Usage:
        ```python
        checker = QualityChecker()
        for issue in checker.check(history):
            print(issue)
        ```
    """

    def __init__(
        self,
        checks: Optional[Sequence[QualityCheck]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the checker.

        Parameters:
            checks: Checks to run (defaults to ``DEFAULT_CHECKS``)
            clock: Returns the current moment
        """
        self.checks = list(checks) if checks is not None else list(DEFAULT_CHECKS)
        self.clock = clock

    def check(self, history: PatientHealthHistory) -> List[str]:
        """Return the issues found, in check order; empty means clean."""
        now = self.clock()
        issues: List[str] = []
        for quality_check in self.checks:
            try:
                issues.extend(quality_check(history, now))
            except Exception as e:
                logger.warning(
                    f"Quality check {getattr(quality_check, '__name__', quality_check)} failed: {e}",
                    exc_info=True,
                )
        return issues
