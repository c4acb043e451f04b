"""History Parser.

Converts a raw third-party payload into a canonical ``PatientHealthHistory``:

    1. Validate the minimal payload shape (fail fast, no partial output)
    2. For each category: map source fields, normalize, drop nameless and
       sentinel records, deduplicate by identity key
    3. Keep unrecognized categories under their original key, with
       best-effort normalization and no field mapping
    4. Run the quality checker and report issues (non-fatal)

Security Impact:
    - Shape violations abort the whole parse with ValidationError
    - Known-bad upstream records (sentinel "junk data") are always dropped
    - A record that cannot be built is rejected and reported, never allowed
      to corrupt the rest of its category

Architecture:
    - Pure domain service; diagnostics go to an injected sink
    - Parsers are registered by version; only "v1" exists today
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic import ValidationError as PydanticValidationError

from history_reconciler.domain.category_schema import CategorySchema, get_category_schema
from history_reconciler.domain.diagnostics import DiagnosticEvent, LoggingDiagnosticsSink
from history_reconciler.domain.enums import DiagnosticKind
from history_reconciler.domain.health_history import PatientHealthHistory
from history_reconciler.domain.ports import DiagnosticsSink, UnsupportedVersionError, ValidationError
from history_reconciler.domain.records import HealthRecord
from history_reconciler.domain.services.deduplicator import deduplicate
from history_reconciler.domain.services.field_mapper import map_fields
from history_reconciler.domain.services.normalizer import normalize_fields
from history_reconciler.domain.services.quality_checker import QualityChecker

logger = logging.getLogger(__name__)

# Compared against the normalized (lower-cased) name
SENTINEL_NAMES = frozenset({"junk data"})


class RawHealthHistoryPayload(BaseModel):
    """Minimal shape every raw payload must have.

    Parameters:
        patient_id: Patient identifier, must be a string
        health_history: Category name -> list of record-like objects
    """

    model_config = ConfigDict(extra="ignore")

    patient_id: StrictStr = Field(..., alias="patientId")
    health_history: Dict[str, List[Dict[str, Any]]] = Field(..., alias="healthHistory")


@dataclass(frozen=True)
class ParseResult:
    """Outcome of a parse, with everything reported along the way.

    Attributes:
        history: The canonical history
        quality_issues: Quality checker findings
        new_categories: Unrecognized categories found in the payload
        rejected_items: Items that could not be built into a record
        dropped_items: Nameless or sentinel items that were discarded
    """

    history: PatientHealthHistory
    quality_issues: Tuple[str, ...] = ()
    new_categories: Tuple[str, ...] = ()
    rejected_items: int = 0
    dropped_items: int = 0


class HistoryParser:
    """Version 1 parser from raw payloads to canonical histories.

    Example Usage:
        ```python
        parser = HistoryParser()
        history = parser.parse({
            "patientId": "P001",
            "healthHistory": {
                "conditions": [{"conditionName": " Asthma ", "conditionStatus": "ACTIVE"}],
            },
        })
        history.records("conditions")[0].name  # "asthma"
        ```
    """

    version = "v1"

    def __init__(
        self,
        diagnostics: Optional[DiagnosticsSink] = None,
        quality_checker: Optional[QualityChecker] = None,
    ):
        """Initialize the parser.

        Parameters:
            diagnostics: Sink for diagnostic events (defaults to logging)
            quality_checker: Checker run over every parsed history
        """
        self.diagnostics = diagnostics or LoggingDiagnosticsSink()
        self.quality_checker = quality_checker or QualityChecker()

    def parse(self, raw: Any) -> PatientHealthHistory:
        """Parse a raw payload into a canonical history.

        Raises:
            ValidationError: If the payload does not have the minimal shape
        """
        return self.parse_with_report(raw).history

    def parse_with_report(self, raw: Any) -> ParseResult:
        """Parse a raw payload and return the history with its report.

        Parameters:
            raw: Payload shaped ``{patientId, healthHistory: {category: [...]}}``

        Returns:
            ParseResult

        Raises:
            ValidationError: If the payload does not have the minimal shape
        """
        payload = self._validate_shape(raw)
        patient_id = payload.patient_id

        categories: Dict[str, List[HealthRecord]] = {}
        new_categories: List[str] = []
        rejected = dropped = 0

        for category, items in payload.health_history.items():
            schema = get_category_schema(category)
            records, category_rejected, category_dropped = self._parse_category(
                patient_id, schema, items
            )
            categories[category] = records
            rejected += category_rejected
            dropped += category_dropped

            if not schema.known:
                new_categories.append(category)
                self.diagnostics.emit(DiagnosticEvent(
                    kind=DiagnosticKind.NEW_CATEGORY,
                    message=f"New category encountered: {category}",
                    patient_id=patient_id,
                    category=category,
                    details={"record_count": len(records)},
                ))

        history = PatientHealthHistory(patient_id=patient_id, health_history=categories)

        issues = self.quality_checker.check(history)
        if issues:
            self.diagnostics.emit(DiagnosticEvent(
                kind=DiagnosticKind.QUALITY_ISSUES,
                message="Data quality issues detected",
                patient_id=patient_id,
                details={"issues": issues},
            ))

        logger.debug(
            f"Parsed history for {patient_id}: "
            f"{sum(len(r) for r in categories.values())} records, "
            f"{dropped} dropped, {rejected} rejected"
        )

        return ParseResult(
            history=history,
            quality_issues=tuple(issues),
            new_categories=tuple(new_categories),
            rejected_items=rejected,
            dropped_items=dropped,
        )

    def _validate_shape(self, raw: Any) -> RawHealthHistoryPayload:
        try:
            return RawHealthHistoryPayload.model_validate(raw)
        except PydanticValidationError as e:
            source = raw.get("patientId") if isinstance(raw, Mapping) else None
            source = source if isinstance(source, str) else None
            errors = e.errors(include_url=False, include_input=False, include_context=False)
            self.diagnostics.emit(DiagnosticEvent(
                kind=DiagnosticKind.PARSE_FAILURE,
                message="Error parsing health history",
                patient_id=source,
                details={"errors": errors},
            ))
            raise ValidationError(
                f"Failed to parse health history data: {e.error_count()} validation error(s)",
                source=source,
                details={"errors": errors},
            ) from e

    def _parse_category(
        self,
        patient_id: str,
        schema: CategorySchema,
        items: Sequence[Mapping[str, Any]],
    ) -> Tuple[List[HealthRecord], int, int]:
        records: List[HealthRecord] = []
        rejected = dropped = 0

        for index, item in enumerate(items):
            fields = self._canonicalize(item, schema)

            name = fields.get("name")
            if not name or name in SENTINEL_NAMES:
                dropped += 1
                continue

            try:
                records.append(schema.record_model.model_validate(fields))
            except PydanticValidationError as e:
                rejected += 1
                self.diagnostics.emit(DiagnosticEvent(
                    kind=DiagnosticKind.ITEM_REJECTED,
                    message=f"Rejected record {index} in {schema.name}",
                    patient_id=patient_id,
                    category=schema.name,
                    details={"index": index, "error_count": e.error_count()},
                ))

        return deduplicate(records), rejected, dropped

    def _canonicalize(self, item: Mapping[str, Any], schema: CategorySchema) -> Dict[str, Any]:
        """Map and normalize one item, appending its pass-through fields.

        Unrecognized categories have no alias table: every raw field is
        treated as canonical and normalized when a rule exists for it.
        """
        if not schema.field_aliases:
            return normalize_fields(item)

        fields = normalize_fields(map_fields(item, schema.field_aliases))
        consumed = schema.alias_keys
        for key, value in item.items():
            if key not in fields and key not in consumed:
                fields[key] = value
        return fields


# ============================================================================
# Version Registry
# ============================================================================

ParserFactory = Callable[..., HistoryParser]

_PARSER_REGISTRY: Dict[str, ParserFactory] = {
    "v1": HistoryParser,
}


def register_parser(version: str, factory: ParserFactory) -> None:
    """Register a parser factory under a version label."""
    _PARSER_REGISTRY[version] = factory


def supported_versions() -> List[str]:
    return sorted(_PARSER_REGISTRY)


def get_parser(version: str = "v1", **kwargs) -> HistoryParser:
    """Build the parser registered for a version.

    Parameters:
        version: Version label ("v1", ...)
        **kwargs: Passed to the parser constructor (diagnostics, ...)

    Raises:
        UnsupportedVersionError: If no parser is registered for the version
    """
    factory = _PARSER_REGISTRY.get(version)
    if factory is None:
        raise UnsupportedVersionError(
            f"Unsupported version: {version}",
            version=version,
            supported=supported_versions(),
        )
    return factory(**kwargs)


def parse_versioned(raw: Any, version: str = "v1", **kwargs) -> PatientHealthHistory:
    """Parse a raw payload with the parser registered for ``version``."""
    return get_parser(version, **kwargs).parse(raw)
