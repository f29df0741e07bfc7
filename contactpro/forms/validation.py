"""Draft models for each entity form.

Every check runs on every submit so all failing fields are reported at
once; messages are the ones shown next to the form fields.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from contactpro.records import (
    ActivityType,
    DealStage,
    EntityKind,
    TaskPriority,
    TaskStatus,
    UserRole,
    UserStatus,
)
from contactpro.records.mapping import parse_date, parse_datetime


EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value).strip()


def _required(value: Any, message: str) -> str:
    text = _text(value)
    if not text:
        raise PydanticCustomError("required", message)
    return text


def _email(value: Any, required_message: str, invalid_message: str, *, required: bool = True) -> str:
    text = _text(value)
    if not text:
        if required:
            raise PydanticCustomError("required", required_message)
        return ""
    if not EMAIL_PATTERN.match(text):
        raise PydanticCustomError("invalid", invalid_message)
    return text


def _choice(enum_type: type[Enum], value: Any, required_message: str, invalid_message: str) -> str:
    text = _required(value, required_message)
    try:
        return str(enum_type(text).value)
    except ValueError:
        raise PydanticCustomError("invalid", invalid_message) from None


def _optional_reference(value: Any, message: str) -> int | None:
    text = _text(value)
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        raise PydanticCustomError("invalid", message) from None


class _Draft(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_default=True)


class ContactDraft(_Draft):
    name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    notes: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def name_required(cls, value: Any) -> str:
        return _required(value, "Name is required")

    @field_validator("email", mode="before")
    @classmethod
    def email_shape(cls, value: Any) -> str:
        return _email(value, "Email is required", "Email is invalid")

    @field_validator("phone", "company", "notes", mode="before")
    @classmethod
    def optional_text(cls, value: Any) -> str:
        return _text(value)


class DealDraft(_Draft):
    title: str = ""
    contact_id: int | None = None
    value: float | None = None
    stage: str = DealStage.LEAD.value
    probability: int = DealStage.LEAD.default_probability
    expected_close_date: date | None = None

    @field_validator("title", mode="before")
    @classmethod
    def title_required(cls, value: Any) -> str:
        return _required(value, "Title is required")

    @field_validator("contact_id", mode="before")
    @classmethod
    def contact_required(cls, value: Any) -> int:
        text = _required(value, "Contact is required")
        try:
            return int(text)
        except ValueError:
            raise PydanticCustomError("invalid", "Contact is invalid") from None

    @field_validator("value", mode="before")
    @classmethod
    def value_positive(cls, value: Any) -> float:
        try:
            amount = float(_text(value))
        except ValueError:
            raise PydanticCustomError("invalid", "Valid deal value is required") from None
        if not math.isfinite(amount) or amount <= 0:
            raise PydanticCustomError("invalid", "Valid deal value is required")
        return amount

    @field_validator("stage", mode="before")
    @classmethod
    def known_stage(cls, value: Any) -> str:
        return _choice(DealStage, value, "Stage is required", "Stage is invalid")

    @field_validator("probability", mode="before")
    @classmethod
    def probability_range(cls, value: Any) -> int:
        try:
            probability = int(float(_text(value) or 0))
        except ValueError:
            raise PydanticCustomError("invalid", "Probability must be between 0 and 100") from None
        if not 0 <= probability <= 100:
            raise PydanticCustomError("invalid", "Probability must be between 0 and 100")
        return probability

    @field_validator("expected_close_date", mode="before")
    @classmethod
    def close_date_required(cls, value: Any) -> date:
        parsed = parse_date(_required(value, "Expected close date is required"))
        if parsed is None:
            raise PydanticCustomError("invalid", "Expected close date is invalid")
        return parsed


class TaskDraft(_Draft):
    title: str = ""
    description: str = ""
    status: str = TaskStatus.OPEN.value
    priority: str = TaskPriority.MEDIUM.value
    due_date: datetime | None = None
    tags: str = ""
    contact_id: int | None = None
    deal_id: int | None = None

    @field_validator("title", mode="before")
    @classmethod
    def title_required(cls, value: Any) -> str:
        return _required(value, "Title is required")

    @field_validator("status", mode="before")
    @classmethod
    def known_status(cls, value: Any) -> str:
        return _choice(TaskStatus, value, "Status is required", "Status is invalid")

    @field_validator("priority", mode="before")
    @classmethod
    def known_priority(cls, value: Any) -> str:
        return _choice(TaskPriority, value, "Priority is required", "Priority is invalid")

    @field_validator("due_date", mode="before")
    @classmethod
    def due_date_shape(cls, value: Any) -> datetime | None:
        if not _text(value):
            return None
        parsed = parse_datetime(value)
        if parsed is None:
            raise PydanticCustomError("invalid", "Due date is invalid")
        return parsed

    @field_validator("description", "tags", mode="before")
    @classmethod
    def optional_text(cls, value: Any) -> str:
        return _text(value)

    @field_validator("contact_id", mode="before")
    @classmethod
    def contact_reference(cls, value: Any) -> int | None:
        return _optional_reference(value, "Contact is invalid")

    @field_validator("deal_id", mode="before")
    @classmethod
    def deal_reference(cls, value: Any) -> int | None:
        return _optional_reference(value, "Deal is invalid")


class CompanyDraft(_Draft):
    name: str = ""
    industry: str = ""
    website: str = ""
    phone: str = ""
    email: str = ""
    description: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def name_required(cls, value: Any) -> str:
        return _required(value, "Company name is required")

    @field_validator("email", mode="before")
    @classmethod
    def email_shape(cls, value: Any) -> str:
        return _email(value, "", "Email is invalid", required=False)

    @field_validator("industry", "website", "phone", "description", mode="before")
    @classmethod
    def optional_text(cls, value: Any) -> str:
        return _text(value)


class UserDraft(_Draft):
    name: str = ""
    email: str = ""
    phone: str = ""
    role: str = UserRole.SALES_REP.value
    status: str = UserStatus.ACTIVE.value

    @field_validator("name", mode="before")
    @classmethod
    def name_required(cls, value: Any) -> str:
        return _required(value, "Name is required")

    @field_validator("email", mode="before")
    @classmethod
    def email_shape(cls, value: Any) -> str:
        return _email(value, "Email is required", "Invalid email format")

    @field_validator("role", mode="before")
    @classmethod
    def known_role(cls, value: Any) -> str:
        return _choice(UserRole, value, "Role is required", "Role is invalid")

    @field_validator("status", mode="before")
    @classmethod
    def known_status(cls, value: Any) -> str:
        return _choice(UserStatus, value, "Status is required", "Status is invalid")

    @field_validator("phone", mode="before")
    @classmethod
    def optional_text(cls, value: Any) -> str:
        return _text(value)


class ActivityDraft(_Draft):
    type: str = ActivityType.NOTE.value
    description: str = ""
    contact_id: int | None = None
    deal_id: int | None = None
    timestamp: datetime | None = None

    @field_validator("type", mode="before")
    @classmethod
    def known_type(cls, value: Any) -> str:
        return _choice(ActivityType, value, "Type is required", "Type is invalid")

    @field_validator("description", mode="before")
    @classmethod
    def description_required(cls, value: Any) -> str:
        return _required(value, "Description is required")

    @field_validator("contact_id", mode="before")
    @classmethod
    def contact_reference(cls, value: Any) -> int | None:
        return _optional_reference(value, "Contact is invalid")

    @field_validator("deal_id", mode="before")
    @classmethod
    def deal_reference(cls, value: Any) -> int | None:
        return _optional_reference(value, "Deal is invalid")

    @field_validator("timestamp", mode="before")
    @classmethod
    def timestamp_shape(cls, value: Any) -> datetime | None:
        if not _text(value):
            return None
        parsed = parse_datetime(value)
        if parsed is None:
            raise PydanticCustomError("invalid", "Timestamp is invalid")
        return parsed


DRAFT_MODELS: dict[EntityKind, type[_Draft]] = {
    EntityKind.CONTACT: ContactDraft,
    EntityKind.DEAL: DealDraft,
    EntityKind.TASK: TaskDraft,
    EntityKind.COMPANY: CompanyDraft,
    EntityKind.USER: UserDraft,
    EntityKind.ACTIVITY: ActivityDraft,
}


def default_draft(kind: EntityKind | str) -> dict[str, Any]:
    """Field defaults for a new record form (unvalidated)."""
    model = DRAFT_MODELS[EntityKind(kind)]
    return {name: info.default for name, info in model.model_fields.items()}


def collect_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else "__root__"
        errors.setdefault(field, error["msg"])
    return errors


def validate_draft(kind: EntityKind | str, values: Mapping[str, Any]) -> tuple[dict[str, Any] | None, dict[str, str]]:
    """Return ``(fields, {})`` for a valid draft or ``(None, errors)`` keyed by field name."""
    model = DRAFT_MODELS[EntityKind(kind)]
    try:
        draft = model.model_validate(dict(values))
    except ValidationError as exc:
        return None, collect_errors(exc)
    return draft.model_dump(), {}
