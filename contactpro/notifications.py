from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from contactpro.context import get_correlation_id
from contactpro.core.events import UI_NOTIFICATION, InProcessEventBus, event_bus


logger = logging.getLogger("contactpro.notifications")

NOTIFICATION_EVENT = UI_NOTIFICATION


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    entity: str | None = None
    correlation_id: str | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, str | None]:
        return {
            "level": self.level.value,
            "message": self.message,
            "entity": self.entity,
            "correlation_id": self.correlation_id,
            "occurred_at": self.occurred_at.isoformat(),
        }


class NotificationCenter:
    """Toast-style notifications: kept until drained, mirrored on the event bus."""

    def __init__(self, bus: InProcessEventBus | None = None, history_limit: int = 200) -> None:
        self._bus = bus or event_bus
        self._pending: deque[Notification] = deque(maxlen=history_limit)

    def notify(self, level: NotificationLevel, message: str, *, entity: str | None = None) -> Notification:
        notification = Notification(
            level=level,
            message=message,
            entity=entity,
            correlation_id=get_correlation_id(),
        )
        self._pending.append(notification)
        self._bus.publish(NOTIFICATION_EVENT, notification.to_payload())
        logger.debug("notification.published", extra={"entity": entity, "outcome": level.value})
        return notification

    def success(self, message: str, *, entity: str | None = None) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message, entity=entity)

    def info(self, message: str, *, entity: str | None = None) -> Notification:
        return self.notify(NotificationLevel.INFO, message, entity=entity)

    def error(self, message: str, *, entity: str | None = None) -> Notification:
        return self.notify(NotificationLevel.ERROR, message, entity=entity)

    @property
    def pending(self) -> list[Notification]:
        return list(self._pending)

    def drain(self) -> list[Notification]:
        drained = list(self._pending)
        self._pending.clear()
        return drained
