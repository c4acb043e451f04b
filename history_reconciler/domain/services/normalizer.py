"""Field Normalizer.

Per-field canonicalization rules applied to mapped records:

    - date fields are reformatted to ISO ``YYYY-MM-DD`` (unparseable -> None)
    - ``name`` and ``status`` are trimmed and lower-cased
    - gram dosages are converted to milligrams

Every rule is total: malformed input degrades to None or passes through,
it never raises. Every rule is idempotent.

Architecture:
    - Pure functions, no infrastructure dependencies
    - ``FIELD_RULES`` is the single table mapping canonical fields to rules
"""

import logging
import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DATE_FIELDS = ("diagnosedDate", "startDate", "endDate", "date")

# Tried in order after ISO parsing fails
_DATE_FORMATS = [
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%Y%m%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
]

_GRAM_DOSAGE = re.compile(
    r"^\s*(?P<amount>[+]?(?:\d+(?:\.\d*)?|\.\d+))\s*(?:g|gm|gms|gram|grams)\s*$",
    re.IGNORECASE,
)


def _to_calendar_date(value: datetime) -> date:
    # Aware datetimes are read in UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def parse_date(value: Any) -> Optional[date]:
    """Parse a calendar date from the formats third-party sources use.

    Parameters:
        value: String, date, datetime, or anything else

    Returns:
        date, or None if the value cannot be read as a date
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _to_calendar_date(value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return _to_calendar_date(datetime.fromisoformat(iso_text))
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    logger.debug(f"Could not parse date: {value!r}")
    return None


def normalize_date(value: Any) -> Optional[str]:
    """Reformat a date value to ``YYYY-MM-DD``; unparseable values become None."""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed is not None else None


def normalize_identity_string(value: Any) -> Optional[str]:
    """Trim and lower-case an identity or status string.

    Numbers are stringified first. Empty strings and values that are not
    scalars (lists, dicts, ...) resolve to None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        value = str(value)
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    return normalized or None


def _render_decimal(amount: Decimal) -> str:
    # normalize() strips trailing zeros, "f" avoids exponent notation
    return format(amount.normalize(), "f")


def normalize_dosage(value: Any) -> Any:
    """Convert a gram dosage to milligrams.

    ``"0.5 g"`` becomes ``"500mg"``. Values in any other unit, malformed
    amounts and non-string values pass through unchanged.
    """
    if not isinstance(value, str):
        return value
    match = _GRAM_DOSAGE.match(value)
    if match is None:
        return value
    try:
        milligrams = Decimal(match.group("amount")) * 1000
    except InvalidOperation:
        return value
    return f"{_render_decimal(milligrams)}mg"


FIELD_RULES: Dict[str, Callable[[Any], Any]] = {
    **{field_name: normalize_date for field_name in DATE_FIELDS},
    "name": normalize_identity_string,
    "status": normalize_identity_string,
    "dosage": normalize_dosage,
}


def normalize_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Apply ``FIELD_RULES`` to the fields present in ``fields``.

    Fields without a rule are copied unchanged. Key order is preserved.

    Parameters:
        fields: Canonical field -> value

    Returns:
        New dict with normalized values
    """
    normalized: Dict[str, Any] = {}
    for field_name, value in fields.items():
        rule = FIELD_RULES.get(field_name)
        normalized[field_name] = rule(value) if rule is not None else value
    return normalized
