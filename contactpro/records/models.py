from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any

from contactpro.records.kinds import EntityKind


@dataclass(frozen=True, eq=True)
class Record:
    """One stored entity. `id` and the timestamps are assigned by the repository."""

    kind: EntityKind
    id: int
    fields: Mapping[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    modified_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.fields, MappingProxyType):
            object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def __hash__(self) -> int:
        return hash((self.kind, self.id))

    def get(self, name: str, default: Any = None) -> Any:
        if name == "id":
            return self.id
        if name == "created_at":
            return self.created_at
        if name == "modified_at":
            return self.modified_at
        return self.fields.get(name, default)

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id}
        for name, value in self.fields.items():
            payload[name] = value.isoformat() if isinstance(value, (date, datetime)) else value
        payload["created_at"] = self.created_at.isoformat() if self.created_at else None
        payload["modified_at"] = self.modified_at.isoformat() if self.modified_at else None
        return payload
