from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from contactpro.records.kinds import EntityKind
from contactpro.records.models import Record


logger = logging.getLogger("contactpro.records.mapping")


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    INTEGER = "integer"
    REFERENCE = "reference"
    DATE = "date"
    DATETIME = "datetime"

    @property
    def is_numeric(self) -> bool:
        return self in (FieldType.NUMBER, FieldType.INTEGER, FieldType.REFERENCE)

    @property
    def is_temporal(self) -> bool:
        return self in (FieldType.DATE, FieldType.DATETIME)


@dataclass(frozen=True)
class FieldSpec:
    name: str
    wire: str
    type: FieldType = FieldType.TEXT


def parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def coerce_value(field_type: FieldType, value: Any) -> Any:
    """Normalize one value to the canonical Python type; unparseable values become None."""
    if value is None:
        return None
    if field_type is FieldType.REFERENCE and isinstance(value, Mapping):
        # lookup fields come back from the hosted store as {"Id": ..., "Name": ...}
        value = value.get("Id")
        if value is None:
            return None
    if isinstance(value, str) and not value.strip() and field_type is not FieldType.TEXT:
        return None
    if field_type in (FieldType.INTEGER, FieldType.REFERENCE):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None
    if field_type is FieldType.NUMBER:
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
    if field_type is FieldType.DATE:
        return parse_date(value)
    if field_type is FieldType.DATETIME:
        return parse_datetime(value)
    return str(value)


def _to_wire_value(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class EntityMapping:
    """The single translation point between hosted wire names and canonical field names."""

    kind: EntityKind
    table: str
    fields: tuple[FieldSpec, ...]
    created_field: str
    modified_field: str | None = None

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)

    def spec(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def wire_name(self, name: str) -> str:
        if name == "id":
            return "Id"
        if name == "created_at":
            return self.created_field
        if name == "modified_at" and self.modified_field:
            return self.modified_field
        spec = self.spec(name)
        if spec is None:
            raise KeyError(f"{self.kind.value} has no field '{name}'")
        return spec.wire

    def field_type(self, name: str) -> FieldType:
        if name == "id":
            return FieldType.INTEGER
        if name in ("created_at", "modified_at"):
            return FieldType.DATETIME
        spec = self.spec(name)
        return spec.type if spec is not None else FieldType.TEXT

    def wire_fields(self) -> list[str]:
        names = ["Id", *(spec.wire for spec in self.fields), self.created_field]
        if self.modified_field:
            names.append(self.modified_field)
        return names

    def coerce_fields(self, values: Mapping[str, Any]) -> dict[str, Any]:
        return {spec.name: coerce_value(spec.type, values[spec.name]) for spec in self.fields if spec.name in values}

    def from_wire(self, raw: Mapping[str, Any]) -> Record:
        fields = {spec.name: coerce_value(spec.type, raw.get(spec.wire)) for spec in self.fields}
        return Record(
            kind=self.kind,
            id=int(raw["Id"]),
            fields=fields,
            created_at=parse_datetime(raw.get(self.created_field)),
            modified_at=parse_datetime(raw.get(self.modified_field)) if self.modified_field else None,
        )

    def to_wire(self, values: Mapping[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(values) - set(self.field_names))
        if unknown:
            logger.debug("mapping.unknown_fields_dropped", extra={"entity": self.kind.value, "error": ",".join(unknown)})
        return {
            spec.wire: _to_wire_value(coerce_value(spec.type, values[spec.name]))
            for spec in self.fields
            if spec.name in values
        }


_MAPPINGS: dict[EntityKind, EntityMapping] = {
    EntityKind.CONTACT: EntityMapping(
        kind=EntityKind.CONTACT,
        table="contact_c",
        fields=(
            FieldSpec("name", "name_c"),
            FieldSpec("email", "email_c"),
            FieldSpec("phone", "phone_c"),
            FieldSpec("company", "company_c"),
            FieldSpec("notes", "notes_c"),
        ),
        created_field="CreatedDate",
    ),
    EntityKind.DEAL: EntityMapping(
        kind=EntityKind.DEAL,
        table="deal_c",
        fields=(
            FieldSpec("title", "Title_c"),
            FieldSpec("contact_id", "ContactId_c", FieldType.REFERENCE),
            FieldSpec("value", "Value_c", FieldType.NUMBER),
            FieldSpec("stage", "Stage_c"),
            FieldSpec("probability", "Probability_c", FieldType.INTEGER),
            FieldSpec("expected_close_date", "ExpectedCloseDate_c", FieldType.DATE),
        ),
        created_field="CreatedDate",
    ),
    EntityKind.TASK: EntityMapping(
        kind=EntityKind.TASK,
        table="task_c",
        fields=(
            FieldSpec("title", "title_c"),
            FieldSpec("description", "description_c"),
            FieldSpec("status", "status_c"),
            FieldSpec("priority", "priority_c"),
            FieldSpec("due_date", "due_date_c", FieldType.DATETIME),
            FieldSpec("tags", "Tags"),
            FieldSpec("contact_id", "contact_id_c", FieldType.REFERENCE),
            FieldSpec("deal_id", "deal_id_c", FieldType.REFERENCE),
        ),
        created_field="CreatedOn",
        modified_field="ModifiedOn",
    ),
    EntityKind.COMPANY: EntityMapping(
        kind=EntityKind.COMPANY,
        table="company_c",
        fields=(
            FieldSpec("name", "Name"),
            FieldSpec("industry", "Industry"),
            FieldSpec("website", "Website"),
            FieldSpec("phone", "Phone"),
            FieldSpec("email", "Email"),
            FieldSpec("description", "Description"),
        ),
        created_field="CreatedDate",
        modified_field="ModifiedDate",
    ),
    EntityKind.USER: EntityMapping(
        kind=EntityKind.USER,
        table="user_c",
        fields=(
            FieldSpec("name", "name_c"),
            FieldSpec("email", "email_c"),
            FieldSpec("phone", "phone_c"),
            FieldSpec("role", "role_c"),
            FieldSpec("status", "status_c"),
        ),
        created_field="createdDate_c",
        modified_field="lastModifiedDate_c",
    ),
    EntityKind.ACTIVITY: EntityMapping(
        kind=EntityKind.ACTIVITY,
        table="activity_c",
        fields=(
            FieldSpec("type", "Type_c"),
            FieldSpec("description", "Description_c"),
            FieldSpec("contact_id", "ContactId_c", FieldType.REFERENCE),
            FieldSpec("deal_id", "DealId_c", FieldType.REFERENCE),
            FieldSpec("timestamp", "Timestamp_c", FieldType.DATETIME),
        ),
        created_field="CreatedDate",
    ),
}


def get_mapping(kind: EntityKind | str) -> EntityMapping:
    return _MAPPINGS[EntityKind(kind)]
