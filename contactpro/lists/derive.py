"""Pure derivation of a list screen's view from its canonical collection.

The view is computed in a fixed order: free-text search, categorical
filters, then a type-aware sort whose ties always break on ascending id.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from contactpro.records import FieldType, Record, get_mapping
from contactpro.records.mapping import coerce_value, parse_datetime
from contactpro.repository.base import FILTER, SEARCH, SORT


FILTER_ALL = "all"


class SortDirection(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"

    def toggled(self) -> SortDirection:
        return SortDirection.DESCENDING if self is SortDirection.ASCENDING else SortDirection.ASCENDING


@dataclass(frozen=True)
class SortSpec:
    field: str
    direction: SortDirection = SortDirection.ASCENDING

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESCENDING


def is_active_filter(value: Any) -> bool:
    if value is None:
        return False
    text = str(value.value if isinstance(value, Enum) else value).strip()
    return text != "" and text.lower() != FILTER_ALL


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def matches_search(record: Record, term: str, search_fields: Iterable[str]) -> bool:
    if not term.strip():
        return True
    needle = term.casefold()
    return any(needle in _text(record.get(name)).casefold() for name in search_fields)


def _sort_value(field_type: FieldType, value: Any) -> Any:
    if value is None:
        return None
    if field_type.is_numeric:
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
    if field_type.is_temporal:
        return parse_datetime(value)
    return _text(value).casefold()


def _filter_matches(record: Record, key: str, expected: Any, field_type: FieldType) -> bool:
    actual = record.get(key)
    if field_type is FieldType.TEXT:
        return _text(actual) == _text(expected)
    return coerce_value(field_type, actual) == coerce_value(field_type, _text(expected))


def derive_view(
    records: Iterable[Record],
    *,
    search: str = "",
    search_fields: Iterable[str] = (),
    filters: Mapping[str, Any] | None = None,
    sort: SortSpec | None = None,
    field_type: Callable[[str], FieldType] | None = None,
    skip: frozenset[str] = frozenset(),
) -> list[Record]:
    """Return a new list; `skip` names dimensions already applied by the backend."""
    matches = list(records)
    if field_type is None:
        field_type = get_mapping(matches[0].kind).field_type if matches else (lambda _name: FieldType.TEXT)

    if SEARCH not in skip and search.strip():
        fields = tuple(search_fields)
        matches = [record for record in matches if matches_search(record, search, fields)]

    if FILTER not in skip:
        for key, expected in (filters or {}).items():
            if not is_active_filter(expected):
                continue
            key_type = field_type(key)
            matches = [record for record in matches if _filter_matches(record, key, expected, key_type)]

    if SORT in skip or sort is None:
        return matches

    sort_type = field_type(sort.field)
    keyed = [(_sort_value(sort_type, record.get(sort.field)), record) for record in matches]
    present = [(key, record) for key, record in keyed if key is not None]
    missing = [record for key, record in keyed if key is None]

    # id order first; the stable key sort (reverse included) keeps it for ties
    present.sort(key=lambda item: item[1].id)
    present.sort(key=lambda item: item[0], reverse=sort.descending)
    missing.sort(key=lambda record: record.id)
    return [record for _, record in present] + missing
