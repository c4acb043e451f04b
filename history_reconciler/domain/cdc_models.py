"""Change Data Capture (CDC) Models.

This module defines models for tracking field-level changes a reconciliation
makes to a stored health history. They back the audit trail of patient
submissions.

Security Impact:
    - Change events carry clinical values (old/new); treat them as PHI
    - Change logs are immutable (append-only) for compliance

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Follows Hexagonal Architecture: Domain Core is isolated from Adapters
"""

import json
import math
import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from history_reconciler.domain.enums import ChangeType


class ChangeEvent(BaseModel):
    """Represents a single field-level change in a health-history record.

    Parameters:
        patient_id: Patient whose history changed
        category: Record category (conditions, allergies, ...)
        record_key: Identity key of the record
        field_name: Wire name of the field that changed
        old_value: Previous value (None for INSERT)
        new_value: New value
        change_type: INSERT or UPDATE
        changed_at: Timestamp when change occurred
        reconciliation_id: ID of the reconciliation that caused this change
        source: Origin of the change (e.g. "patient_review")
    """

    patient_id: Optional[str] = Field(None, description="Patient identifier")
    category: str = Field(..., description="Record category")
    record_key: str = Field(..., description="Identity key of the record")
    field_name: str = Field(..., description="Name of the field that changed")
    old_value: Optional[Any] = Field(None, description="Previous value (before change)")
    new_value: Optional[Any] = Field(None, description="New value (after change)")
    change_type: ChangeType = Field(..., description="Type of change: INSERT or UPDATE")
    changed_at: datetime = Field(default_factory=datetime.now, description="Timestamp when change occurred")
    reconciliation_id: Optional[str] = Field(None, description="ID of the reconciliation run")
    source: Optional[str] = Field(None, description="Origin of the change")

    def to_audit_dict(self) -> dict:
        """Convert to dictionary for audit log insertion.

        Returns:
            Dictionary with serialized values suitable for storage
        """
        return {
            'change_id': str(uuid.uuid4()),
            'patient_id': self.patient_id,
            'category': self.category,
            'record_key': self.record_key,
            'field_name': self.field_name,
            'old_value': self._serialize_value(self.old_value),
            'new_value': self._serialize_value(self.new_value),
            'change_type': self.change_type.value,
            'changed_at': self.changed_at,
            'reconciliation_id': self.reconciliation_id,
            'source': self.source,
        }

    def _serialize_value(self, value: Any) -> Optional[str]:
        """Serialize complex types to JSON string for storage."""
        if value is None:
            return None

        if isinstance(value, (list, dict)):
            try:
                return json.dumps(value, sort_keys=True)
            except (TypeError, ValueError):
                return str(value)

        if isinstance(value, float) and math.isnan(value):
            return None

        return str(value)

    model_config = {
        'frozen': True,
    }
