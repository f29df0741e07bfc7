from __future__ import annotations

from collections.abc import Iterable

from contactpro.records import Record


UNKNOWN_CONTACT = "Unknown Contact"
UNKNOWN_DEAL = "Unknown Deal"


class ReferenceIndex:
    """Id lookup over a loaded collection, used to resolve foreign-key display names."""

    def __init__(self, records: Iterable[Record] = ()) -> None:
        self._by_id = {record.id: record for record in records}

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, record_id: int | None) -> Record | None:
        if record_id is None:
            return None
        return self._by_id.get(record_id)

    def display(self, record_id: int | None, field: str, fallback: str) -> str:
        record = self.get(record_id)
        if record is None:
            return fallback
        value = record.get(field)
        return str(value) if value not in (None, "") else fallback
