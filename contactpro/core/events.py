from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from contactpro.context import get_correlation_id


logger = logging.getLogger("contactpro.events")

SYSTEM_STARTED = "system.started"
UI_NOTIFICATION = "ui.notification"


@dataclass(frozen=True)
class InternalEvent:
    name: str
    payload: dict[str, Any]
    correlation_id: str | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


EventHandler = Callable[[InternalEvent], None]


class InProcessEventBus:
    """Synchronous fan-out to subscribers, in subscription order."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> Callable[[], None]:
        self._subscribers[event_name].append(handler)
        return lambda: self.unsubscribe(event_name, handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._subscribers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def subscriber_count(self, event_name: str) -> int:
        return len(self._subscribers.get(event_name, []))

    def publish(self, event_name: str, payload: dict[str, Any]) -> InternalEvent:
        event = InternalEvent(name=event_name, payload=dict(payload), correlation_id=get_correlation_id())
        handlers = list(self._subscribers.get(event_name, []))
        logger.debug("event.published", extra={"operation": event_name, "count": len(handlers)})
        for handler in handlers:
            handler(event)
        return event


event_bus = InProcessEventBus()
