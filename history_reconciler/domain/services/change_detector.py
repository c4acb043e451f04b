"""Change Detection Service.

This service detects field-level changes between a stored health history and
its reconciled successor using vectorized pandas operations.

Security Impact:
    - Compares clinical values; change events are PHI
    - Change events are the audit trail of patient submissions

Architecture:
    - Pure domain service with no infrastructure dependencies
    - Uses pandas merges keyed on the record identity key
    - Returns domain models (ChangeEvent) for use by adapters
"""

import json
import logging
from typing import Any, List, Optional, Sequence

import pandas as pd

from history_reconciler.domain.category_schema import KNOWN_CATEGORIES
from history_reconciler.domain.cdc_models import ChangeEvent
from history_reconciler.domain.enums import ChangeType
from history_reconciler.domain.health_history import PatientHealthHistory
from history_reconciler.domain.records import HealthRecord

logger = logging.getLogger(__name__)

RECORD_KEY = "__record_key__"
_NULL = "__NULL__"


def _is_missing(value: Any) -> bool:
    if isinstance(value, (list, tuple, dict)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _clean(value: Any) -> Any:
    return None if _is_missing(value) else value


class ChangeDetector:
    """Service for detecting field-level changes between two histories.

    Example Usage:
        ```python
        detector = ChangeDetector(reconciliation_id="rec-123")
        events = detector.detect_history_changes(stored, reconciled)
        for event in events:
            audit_log.append(event.to_audit_dict())
        ```
    """

    def __init__(self, reconciliation_id: Optional[str] = None, source: Optional[str] = "patient_review"):
        """Initialize change detector.

        Parameters:
            reconciliation_id: ID of the current reconciliation run
            source: Origin recorded on every event
        """
        self.reconciliation_id = reconciliation_id
        self.source = source

    def detect_history_changes(
        self,
        original: PatientHealthHistory,
        reconciled: PatientHealthHistory,
    ) -> List[ChangeEvent]:
        """Detect every field-level change across the known categories.

        Matched records (same identity key on both sides) produce UPDATE
        events for differing fields; records only present in ``reconciled``
        produce INSERT events for their non-null fields.

        Parameters:
            original: History before reconciliation
            reconciled: History after reconciliation

        Returns:
            List of ChangeEvent objects, grouped by category
        """
        patient_id = reconciled.patient_id
        events: List[ChangeEvent] = []

        for category in KNOWN_CATEGORIES:
            old_df = self._records_frame(original.records(category))
            new_df = self._records_frame(reconciled.records(category))
            if new_df.empty:
                continue

            data_columns = [c for c in old_df.columns if c != RECORD_KEY]
            data_columns += [c for c in new_df.columns if c != RECORD_KEY and c not in data_columns]
            old_df = old_df.reindex(columns=[RECORD_KEY] + data_columns)
            new_df = new_df.reindex(columns=[RECORD_KEY] + data_columns)

            merged_df = old_df.merge(
                new_df,
                on=RECORD_KEY,
                how="outer",
                suffixes=("_old", "_new"),
                indicator=True,
            )

            matched = merged_df[merged_df["_merge"] == "both"]
            changes_df = self.detect_changes_vectorized(matched, category, RECORD_KEY, data_columns)
            events.extend(self.changes_df_to_events(changes_df, patient_id))

            inserted_keys = merged_df.loc[merged_df["_merge"] == "right_only", RECORD_KEY]
            inserted_df = new_df[new_df[RECORD_KEY].isin(inserted_keys)]
            events.extend(self.generate_insert_changes(inserted_df, category, RECORD_KEY, patient_id))

        return events

    def _records_frame(self, records: Sequence[HealthRecord]) -> pd.DataFrame:
        """Build a DataFrame of wire-shaped records keyed by identity key."""
        rows = [
            {RECORD_KEY: record.identity_key, **record.to_payload()}
            for record in records
            if record.identity_key is not None
        ]
        if not rows:
            return pd.DataFrame(columns=[RECORD_KEY])
        return pd.DataFrame(rows, dtype=object).drop_duplicates(subset=[RECORD_KEY], keep="last")

    def detect_changes_vectorized(
        self,
        merged_df: pd.DataFrame,
        category: str,
        primary_key: str,
        data_columns: Sequence[str],
    ) -> pd.DataFrame:
        """Detect field-level changes using vectorized pandas operations.

        Parameters:
            merged_df: Matched rows of an old/new merge, with ``_old`` and
                ``_new`` suffixed columns
            category: Record category
            primary_key: Name of the identity key column
            data_columns: Unsuffixed field names to compare

        Returns:
            DataFrame with columns: category, record_key, field_name,
            old_value, new_value, change_type
        """
        columns = ['category', 'record_key', 'field_name', 'old_value', 'new_value', 'change_type']
        if merged_df.empty:
            return pd.DataFrame(columns=columns)

        changes_list = []

        for col in data_columns:
            old_col = f"{col}_old"
            new_col = f"{col}_new"

            if old_col not in merged_df.columns or new_col not in merged_df.columns:
                continue

            old_normalized = self._normalize_for_comparison(merged_df[old_col])
            new_normalized = self._normalize_for_comparison(merged_df[new_col])

            changed_mask = old_normalized != new_normalized

            if changed_mask.any():
                for _, row in merged_df[changed_mask].iterrows():
                    changes_list.append({
                        'category': category,
                        'record_key': str(row[primary_key]),
                        'field_name': col,
                        'old_value': _clean(row[old_col]),
                        'new_value': _clean(row[new_col]),
                        'change_type': ChangeType.UPDATE.value,
                    })

        return pd.DataFrame(changes_list, columns=columns, dtype=object)

    def _normalize_for_comparison(self, series: pd.Series) -> pd.Series:
        """Normalize a pandas Series to comparable string representations.

        Handles NaN, None, lists and dicts.
        """
        def normalize_value(x):
            if _is_missing(x):
                return _NULL
            if isinstance(x, (list, dict)):
                try:
                    return json.dumps(x, sort_keys=True)
                except (TypeError, ValueError):
                    return str(x)
            return str(x)

        return series.map(normalize_value)

    def changes_df_to_events(
        self,
        changes_df: pd.DataFrame,
        patient_id: Optional[str] = None
    ) -> List[ChangeEvent]:
        """Convert changes DataFrame to list of ChangeEvent objects."""
        if changes_df.empty:
            return []

        events = []
        for _, row in changes_df.iterrows():
            try:
                events.append(ChangeEvent(
                    patient_id=patient_id,
                    category=row['category'],
                    record_key=row['record_key'],
                    field_name=row['field_name'],
                    old_value=_clean(row['old_value']),
                    new_value=_clean(row['new_value']),
                    change_type=row['change_type'],
                    reconciliation_id=self.reconciliation_id,
                    source=self.source,
                ))
            except ValueError as e:
                logger.warning(
                    f"Failed to create ChangeEvent for {row['category']}/{row['record_key']}: {e}"
                )
                continue

        return events

    def generate_insert_changes(
        self,
        df: pd.DataFrame,
        category: str,
        primary_key: str,
        patient_id: Optional[str] = None
    ) -> List[ChangeEvent]:
        """Generate INSERT events for every non-null field of new records."""
        if df.empty:
            return []

        events = []
        for _, row in df.iterrows():
            record_key = str(row[primary_key])

            for col in df.columns:
                if col == primary_key:
                    continue

                value = row[col]
                if _is_missing(value):
                    continue

                try:
                    events.append(ChangeEvent(
                        patient_id=patient_id,
                        category=category,
                        record_key=record_key,
                        field_name=col,
                        old_value=None,
                        new_value=_clean(value),
                        change_type=ChangeType.INSERT,
                        reconciliation_id=self.reconciliation_id,
                        source=self.source,
                    ))
                except ValueError as e:
                    logger.warning(f"Failed to create INSERT ChangeEvent for {col}: {e}")
                    continue

        return events
