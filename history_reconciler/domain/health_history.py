"""Patient Health History Aggregate.

This module defines ``PatientHealthHistory``, the canonical value produced by
the History Parser and consumed and produced by the Reconciler.

Security Impact:
    - ``patientId`` is frozen once assigned; reassignment raises
    - Every category list is validated into its category's record model

Architecture:
    - Pure domain model with zero infrastructure dependencies
    - The four known categories are always present (possibly empty)
    - Unrecognized categories are kept under their original key
"""

from typing import Any, Dict, Iterator, List, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, model_validator

from history_reconciler.domain.category_schema import KNOWN_CATEGORIES, get_category_schema, is_known_category
from history_reconciler.domain.records import HealthRecord


class PatientHealthHistory(BaseModel):
    """Canonical health history of one patient.

    Parameters:
        patient_id: Patient identifier (wire name ``patientId``), immutable
        health_history: Category name -> ordered records (wire name
            ``healthHistory``)

    Example:
        ```python
        history = PatientHealthHistory.model_validate({
            "patientId": "P001",
            "healthHistory": {"conditions": [{"name": "asthma"}]},
        })
        history.records("allergies")  # [] - known categories always exist
        history.to_payload()          # camelCase dict for storage
        ```
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    patient_id: str = Field(..., alias="patientId", frozen=True, description="Patient identifier")
    health_history: Dict[str, List[SerializeAsAny[HealthRecord]]] = Field(
        default_factory=dict,
        alias="healthHistory",
        description="Category name -> ordered records",
    )

    @model_validator(mode="before")
    @classmethod
    def build_category_records(cls, data: Any) -> Any:
        """Validate each category's items into that category's record model.

        Also guarantees the four known categories are present.
        """
        if not isinstance(data, Mapping):
            return data

        data = dict(data)
        key = "healthHistory" if "healthHistory" in data else "health_history"
        categories = data.get(key)
        if categories is None:
            categories = {}
        if not isinstance(categories, Mapping):
            return data

        built: Dict[str, Any] = {}
        for category, items in categories.items():
            if not isinstance(items, (list, tuple)):
                # Let field validation report the bad shape
                built[category] = items
                continue
            model = get_category_schema(category).record_model
            built[category] = [
                model.model_validate(item) if isinstance(item, Mapping) else item
                for item in items
            ]

        for category in KNOWN_CATEGORIES:
            built.setdefault(category, [])

        data[key] = built
        return data

    def records(self, category: str) -> List[HealthRecord]:
        """Return the records of a category (empty list if absent)."""
        return self.health_history.get(category, [])

    def categories(self) -> Tuple[str, ...]:
        return tuple(self.health_history)

    def unrecognized_categories(self) -> Tuple[str, ...]:
        return tuple(c for c in self.health_history if not is_known_category(c))

    def iter_records(self) -> Iterator[Tuple[str, HealthRecord]]:
        """Yield ``(category, record)`` pairs across all categories."""
        for category, records in self.health_history.items():
            for record in records:
                yield category, record

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the camelCase wire shape handed to storage."""
        return {
            "patientId": self.patient_id,
            "healthHistory": {
                category: [record.to_payload() for record in records]
                for category, records in self.health_history.items()
            },
        }
