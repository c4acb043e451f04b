"""Canonical Record Schema Definitions.

This module defines the canonical record models for each health-history
category. A record is a closed set of canonical fields plus a pass-through
bag holding every source field the category does not define.

Security Impact:
    - Clinician data the parser does not understand is never dropped; it is
      carried in the pass-through bag unmodified
    - Canonical fields accept any JSON value: the parser normalizes them,
      while patient-entered values are carried as submitted

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Canonical fields are snake_case attributes exposed under camelCase wire
      names (``diagnosed_date`` <-> ``diagnosedDate``)
    - Pass-through fields live in ``model_extra`` (``extra="allow"``)
    - Serialization keeps exactly the keys that were set, so a record built
      from a patient's verbatim entry round-trips verbatim
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from history_reconciler.domain.services.normalizer import normalize_identity_string


def identity_key(value: Any) -> Optional[str]:
    """Return the identity key (trimmed, lower-cased name) for a raw name value.

    Parameters:
        value: Raw or normalized ``name`` value

    Returns:
        Identity key, or None when the value has no usable name
    """
    return normalize_identity_string(value)


class HealthRecord(BaseModel):
    """Base model shared by every category record.

    Parameters:
        name: Record name, the identity key within its category
    """

    model_config = ConfigDict(extra="allow", alias_generator=to_camel)

    name: Optional[Any] = Field(None, description="Record name (identity key)")

    @property
    def identity_key(self) -> Optional[str]:
        """Normalized name used for deduplication and reconciliation matching."""
        return identity_key(self.name)

    @property
    def passthrough(self) -> Dict[str, Any]:
        """Source fields outside the category's canonical set."""
        return dict(self.model_extra or {})

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the camelCase wire shape, keeping only set keys."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class ConditionRecord(HealthRecord):
    """A diagnosed condition."""

    diagnosed_date: Optional[Any] = Field(None, description="Diagnosis date (YYYY-MM-DD)")
    status: Optional[Any] = Field(None, description="Condition status, lower-cased")
    start_date: Optional[Any] = Field(None, description="Onset date (YYYY-MM-DD)")
    end_date: Optional[Any] = Field(None, description="Resolution date (YYYY-MM-DD)")


class AllergyRecord(HealthRecord):
    """A recorded allergy."""

    severity: Optional[Any] = Field(None, description="Reported severity")
    reaction: Optional[Any] = Field(None, description="Reported reaction")


class ProcedureRecord(HealthRecord):
    """A performed procedure."""

    date: Optional[Any] = Field(None, description="Procedure date (YYYY-MM-DD)")
    category: Optional[Any] = Field(None, description="Procedure category")
    start_date: Optional[Any] = Field(None, description="Start date (YYYY-MM-DD)")
    end_date: Optional[Any] = Field(None, description="End date (YYYY-MM-DD)")


class MedicationRecord(HealthRecord):
    """A prescribed medication."""

    dosage: Optional[Any] = Field(None, description="Dosage, grams rendered as mg")
    frequency: Optional[Any] = Field(None, description="Administration frequency")
    start_date: Optional[Any] = Field(None, description="Start date (YYYY-MM-DD)")
    end_date: Optional[Any] = Field(None, description="End date (YYYY-MM-DD)")


class GenericRecord(HealthRecord):
    """Record of a category the system does not recognize.

    Only ``name`` is declared; every other source field is kept as-is.
    """
