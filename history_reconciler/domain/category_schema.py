"""Category Schema and Field Policy Table.

A single static table drives both halves of the engine: the History Parser
reads the alias table of each category, and the Reconciler reads the
provenance of each field. Category dispatch never branches inline on
category names.

Architecture:
    - Pure domain configuration with no infrastructure dependencies
    - Fields missing from a category's provenance map are OBJECTIVE
    - Unrecognized categories get a schema with no aliases and no policy
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional, Tuple, Type

from history_reconciler.domain.enums import Provenance, RecordCategory
from history_reconciler.domain.records import (
    AllergyRecord,
    ConditionRecord,
    GenericRecord,
    HealthRecord,
    MedicationRecord,
    ProcedureRecord,
)
from history_reconciler.domain.services.field_mapper import consumed_keys


@dataclass(frozen=True)
class CategorySchema:
    """Mapping and reconciliation policy for one record category.

    Attributes:
        name: Category key as it appears in payloads
        record_model: Record model instantiated for items of this category
        field_aliases: Canonical field -> source field names in priority order
        provenance: Canonical or pass-through field -> provenance tag
        known: False for categories introduced by the source data
    """

    name: str
    record_model: Type[HealthRecord]
    field_aliases: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    provenance: Mapping[str, Provenance] = field(default_factory=dict)
    known: bool = True

    @property
    def canonical_fields(self) -> Tuple[str, ...]:
        return tuple(self.field_aliases)

    @property
    def alias_keys(self) -> FrozenSet[str]:
        """Every source key consumed by the alias table."""
        return consumed_keys(self.field_aliases)

    def provenance_for(self, field_name: str) -> Provenance:
        return self.provenance.get(field_name, Provenance.OBJECTIVE)

    def overridable_fields(self) -> Dict[str, Provenance]:
        """Fields the patient may change, in table order."""
        return {
            name: tag
            for name, tag in self.provenance.items()
            if tag is not Provenance.OBJECTIVE
        }


CATEGORY_SCHEMAS: Dict[str, CategorySchema] = {
    RecordCategory.CONDITIONS.value: CategorySchema(
        name=RecordCategory.CONDITIONS.value,
        record_model=ConditionRecord,
        field_aliases={
            "name": ("name", "conditionName", "diagnosis"),
            "diagnosedDate": ("diagnosedDate", "dateOfDiagnosis"),
            "status": ("status", "conditionStatus"),
            "startDate": ("startDate", "onsetDate"),
            "endDate": ("endDate", "resolutionDate"),
        },
        provenance={
            "status": Provenance.SUBJECTIVE,
            "details": Provenance.PATIENT_EXTENDABLE,
        },
    ),
    RecordCategory.ALLERGIES.value: CategorySchema(
        name=RecordCategory.ALLERGIES.value,
        record_model=AllergyRecord,
        field_aliases={
            "name": ("name", "allergyName"),
            "severity": ("severity", "allergySeverity"),
            "reaction": ("reaction", "allergyReaction"),
        },
        provenance={
            "severity": Provenance.SUBJECTIVE,
            "reaction": Provenance.PATIENT_EXTENDABLE,
        },
    ),
    RecordCategory.PROCEDURES.value: CategorySchema(
        name=RecordCategory.PROCEDURES.value,
        record_model=ProcedureRecord,
        field_aliases={
            "name": ("name", "procedureName"),
            "date": ("date", "procedureDate"),
            "category": ("category", "procedureCategory"),
            "startDate": ("startDate",),
            "endDate": ("endDate",),
        },
        provenance={
            "details": Provenance.PATIENT_EXTENDABLE,
        },
    ),
    RecordCategory.MEDICATIONS.value: CategorySchema(
        name=RecordCategory.MEDICATIONS.value,
        record_model=MedicationRecord,
        field_aliases={
            "name": ("name", "medicationName"),
            "dosage": ("dosage", "medicationDosage"),
            "frequency": ("frequency", "medicationFrequency"),
            "startDate": ("startDate",),
            "endDate": ("endDate",),
        },
        provenance={
            "dosage": Provenance.OBJECTIVE,
            "frequency": Provenance.PATIENT_EXTENDABLE,
            "sideEffects": Provenance.PATIENT_EXTENDABLE,
        },
    ),
}

KNOWN_CATEGORIES: Tuple[str, ...] = tuple(CATEGORY_SCHEMAS)


def is_known_category(category: str) -> bool:
    return category in CATEGORY_SCHEMAS


def get_category_schema(category: str) -> CategorySchema:
    """Return the schema for a category, building an empty one if unrecognized.

    Parameters:
        category: Category key from a payload

    Returns:
        CategorySchema: The registered schema, or a schema with no aliases,
        no policy and ``GenericRecord`` as record model
    """
    schema: Optional[CategorySchema] = CATEGORY_SCHEMAS.get(category)
    if schema is not None:
        return schema
    return CategorySchema(name=category, record_model=GenericRecord, known=False)
