"""Client-side keyword search over materialized record lists."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

T = TypeVar("T")


def matches(term: str, values: Iterable[object]) -> bool:
    """True when ``term`` occurs, case-insensitively, in any non-empty value."""
    needle = term.strip().lower()
    if not needle:
        return True
    return any(needle in str(value).lower() for value in values if value is not None)


def filter_records(
    records: Sequence[T],
    term: str | None,
    fields: Callable[[T], Iterable[object]],
) -> list[T]:
    """Keep records whose searchable fields contain ``term``.

    Args:
        records: The list as last loaded from the store.
        term: Search box contents; blank keeps every record.
        fields: Extracts the searchable values of one record.

    Returns:
        Matching records in their original order.
    """
    if not term or not term.strip():
        return list(records)
    return [record for record in records if matches(term, fields(record))]
