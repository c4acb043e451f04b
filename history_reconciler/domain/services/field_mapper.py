"""Field Mapper.

Resolves the assorted field-name variants third-party sources use
(``conditionName``, ``diagnosis``, ``name``, ...) to canonical field names.
"""

from typing import Any, Dict, FrozenSet, Mapping, Sequence


def map_field(item: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    """Return the value of the first alias present in ``item``.

    A key that is present with a ``None`` value still counts as present and
    stops the search.

    Parameters:
        item: Raw source record
        aliases: Accepted source field names, highest priority first

    Returns:
        The resolved value, or None when no alias is present
    """
    for alias in aliases:
        if alias in item:
            return item[alias]
    return None


def map_fields(item: Mapping[str, Any], field_aliases: Mapping[str, Sequence[str]]) -> Dict[str, Any]:
    """Produce a value for every canonical field of an alias table.

    Parameters:
        item: Raw source record
        field_aliases: Canonical field -> aliases in priority order

    Returns:
        Dict with exactly the canonical fields of the table, in table order
    """
    return {
        canonical: map_field(item, aliases)
        for canonical, aliases in field_aliases.items()
    }


def consumed_keys(field_aliases: Mapping[str, Sequence[str]]) -> FrozenSet[str]:
    """Source keys covered by an alias table (never kept as pass-through)."""
    return frozenset(alias for aliases in field_aliases.values() for alias in aliases)
