"""Record Deduplicator.

Collapses records of one category that share an identity key. The value of
the last occurrence wins; the output keeps the position at which each key was
first seen.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar, Union

from history_reconciler.domain.records import HealthRecord, identity_key

R = TypeVar("R", bound=Union[HealthRecord, Mapping[str, Any]])


def record_identity(record: Union[HealthRecord, Mapping[str, Any]]) -> Optional[str]:
    """Identity key of a record model or a plain record mapping."""
    if isinstance(record, HealthRecord):
        return record.identity_key
    return identity_key(record.get("name"))


def deduplicate(
    records: Sequence[R],
    key: Callable[[R], Optional[str]] = record_identity,
) -> List[R]:
    """Keep at most one record per identity key.

    Parameters:
        records: Records of a single category, in input order
        key: Identity key function (defaults to the normalized ``name``)

    Returns:
        List with one record per key: the last occurrence's value, placed at
        the first occurrence's position
    """
    survivors: Dict[Optional[str], R] = {}
    for record in records:
        # Re-assigning an existing key keeps its insertion position
        survivors[key(record)] = record
    return list(survivors.values())
