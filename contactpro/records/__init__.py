from contactpro.records.kinds import (
    ActivityType,
    DealStage,
    EntityKind,
    TaskPriority,
    TaskStatus,
    UserRole,
    UserStatus,
)
from contactpro.records.mapping import FieldType, get_mapping
from contactpro.records.models import Record

__all__ = [
    "ActivityType",
    "DealStage",
    "EntityKind",
    "FieldType",
    "Record",
    "TaskPriority",
    "TaskStatus",
    "UserRole",
    "UserStatus",
    "get_mapping",
]
