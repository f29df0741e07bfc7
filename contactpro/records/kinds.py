from __future__ import annotations

from enum import Enum


class EntityKind(str, Enum):
    CONTACT = "contact"
    DEAL = "deal"
    TASK = "task"
    COMPANY = "company"
    USER = "user"
    ACTIVITY = "activity"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class DealStage(str, Enum):
    LEAD = "lead"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed-won"
    CLOSED_LOST = "closed-lost"

    @property
    def label(self) -> str:
        return self.value.replace("-", " ").title()

    @property
    def default_probability(self) -> int:
        return _STAGE_PROBABILITY[self]

    @classmethod
    def parse(cls, value: object) -> DealStage | None:
        try:
            return cls(value)
        except (ValueError, TypeError):
            return None


_STAGE_PROBABILITY: dict[DealStage, int] = {
    DealStage.LEAD: 10,
    DealStage.QUALIFIED: 25,
    DealStage.PROPOSAL: 50,
    DealStage.NEGOTIATION: 75,
    DealStage.CLOSED_WON: 100,
    DealStage.CLOSED_LOST: 0,
}


class TaskStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class UserRole(str, Enum):
    ADMIN = "Admin"
    MANAGER = "Manager"
    SALES_REP = "Sales Rep"
    SUPPORT = "Support"


class UserStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    PENDING = "Pending"


class ActivityType(str, Enum):
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    NOTE = "note"
    DEAL_CREATED = "deal_created"
    DEAL_UPDATED = "deal_updated"
    CONTACT_CREATED = "contact_created"
    CONTACT_UPDATED = "contact_updated"
