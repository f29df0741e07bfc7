"""Read-only dashboard and activity feed built from joined repository loads."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from contactpro.concurrency import fan_in
from contactpro.core.errors import CrmError
from contactpro.lists.lookup import UNKNOWN_CONTACT, UNKNOWN_DEAL, ReferenceIndex
from contactpro.lists.pipeline import deal_amount
from contactpro.records import EntityKind, Record
from contactpro.records.mapping import parse_datetime
from contactpro.repository.registry import RepositoryRegistry


logger = logging.getLogger("contactpro.dashboard")

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_currency(amount: Any, *, cents: bool = False) -> str:
    value = deal_amount(amount)
    sign = "-" if value < 0 else ""
    digits = f"{abs(value):,.2f}" if cents else f"{abs(value):,.0f}"
    return f"{sign}${digits}"


def day_label(value: Any, today: datetime) -> str:
    moment = parse_datetime(value)
    if moment is None:
        return "Invalid date"
    day = moment.astimezone(today.tzinfo or timezone.utc).date()
    if day == today.date():
        return "Today"
    if day == today.date() - timedelta(days=1):
        return "Yesterday"
    return day.strftime("%b %d, %Y")


def _newest_first(records: Iterable[Record], field: str) -> list[Record]:
    floor = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(records, key=lambda record: (parse_datetime(record.get(field)) or floor, record.id), reverse=True)


@dataclass(frozen=True)
class DashboardStats:
    total_contacts: int
    total_deals: int
    pipeline_value: float
    recent_activities: int


@dataclass(frozen=True)
class DashboardSnapshot:
    stats: DashboardStats
    recent_contacts: tuple[Record, ...]
    recent_deals: tuple[tuple[Record, str], ...]
    recent_activities: tuple[tuple[Record, str], ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "stats": {
                "total_contacts": self.stats.total_contacts,
                "total_deals": self.stats.total_deals,
                "pipeline_value": self.stats.pipeline_value,
                "pipeline_value_display": format_currency(self.stats.pipeline_value),
                "recent_activities": self.stats.recent_activities,
            },
            "recent_contacts": [record.to_dict() for record in self.recent_contacts],
            "recent_deals": [{**deal.to_dict(), "contact_name": name} for deal, name in self.recent_deals],
            "recent_activities": [
                {**activity.to_dict(), "contact_name": name} for activity, name in self.recent_activities
            ],
        }


class DashboardService:
    def __init__(
        self,
        repositories: RepositoryRegistry,
        *,
        recent_limit: int = 5,
        activity_days: int = 7,
        clock: Clock = _utcnow,
    ) -> None:
        self._repositories = repositories
        self._recent_limit = recent_limit
        self._activity_days = activity_days
        self._clock = clock
        self.error: str | None = None

    async def load(self) -> DashboardSnapshot | None:
        try:
            contacts, deals, activities = await fan_in(
                self._repositories[EntityKind.CONTACT].list(),
                self._repositories[EntityKind.DEAL].list(),
                self._repositories[EntityKind.ACTIVITY].list(),
            )
        except CrmError as exc:
            self.error = "Failed to load dashboard data"
            logger.warning("dashboard.load_failed", extra={"error": str(exc)})
            return None
        self.error = None
        return self.summarize(contacts, deals, activities)

    def summarize(self, contacts: list[Record], deals: list[Record], activities: list[Record]) -> DashboardSnapshot:
        cutoff = self._clock() - timedelta(days=self._activity_days)
        recent_count = sum(
            1
            for activity in activities
            if (moment := parse_datetime(activity.get("timestamp"))) is not None and moment > cutoff
        )
        index = ReferenceIndex(contacts)
        limit = self._recent_limit

        return DashboardSnapshot(
            stats=DashboardStats(
                total_contacts=len(contacts),
                total_deals=len(deals),
                pipeline_value=sum(deal_amount(deal.get("value")) for deal in deals),
                recent_activities=recent_count,
            ),
            recent_contacts=tuple(_newest_first(contacts, "created_at")[:limit]),
            recent_deals=tuple(
                (deal, index.display(deal.get("contact_id"), "name", UNKNOWN_CONTACT))
                for deal in _newest_first(deals, "created_at")[:limit]
            ),
            recent_activities=tuple(
                (activity, index.display(activity.get("contact_id"), "name", UNKNOWN_CONTACT))
                for activity in _newest_first(activities, "timestamp")[:limit]
            ),
        )


@dataclass(frozen=True)
class FeedEntry:
    activity: Record
    contact_name: str
    deal_title: str | None

    def to_dict(self) -> dict[str, Any]:
        return {**self.activity.to_dict(), "contact_name": self.contact_name, "deal_title": self.deal_title}


@dataclass(frozen=True)
class FeedDay:
    label: str
    entries: tuple[FeedEntry, ...]


class ActivityFeed:
    """Activities newest first, grouped under Today / Yesterday / date headings."""

    def __init__(self, repositories: RepositoryRegistry, *, clock: Clock = _utcnow) -> None:
        self._repositories = repositories
        self._clock = clock
        self.error: str | None = None

    async def load(self) -> list[FeedDay] | None:
        try:
            activities, contacts, deals = await fan_in(
                self._repositories[EntityKind.ACTIVITY].list(),
                self._repositories[EntityKind.CONTACT].list(),
                self._repositories[EntityKind.DEAL].list(),
            )
        except CrmError as exc:
            self.error = "Failed to load activities"
            logger.warning("activity_feed.load_failed", extra={"error": str(exc)})
            return None
        self.error = None
        return self.group(activities, contacts, deals)

    def group(self, activities: list[Record], contacts: list[Record], deals: list[Record]) -> list[FeedDay]:
        contact_index = ReferenceIndex(contacts)
        deal_index = ReferenceIndex(deals)
        today = self._clock()

        days: dict[str, list[FeedEntry]] = {}
        for activity in _newest_first(activities, "timestamp"):
            deal_id = activity.get("deal_id")
            entry = FeedEntry(
                activity=activity,
                contact_name=contact_index.display(activity.get("contact_id"), "name", UNKNOWN_CONTACT),
                deal_title=deal_index.display(deal_id, "title", UNKNOWN_DEAL) if deal_id is not None else None,
            )
            days.setdefault(day_label(activity.get("timestamp"), today), []).append(entry)
        return [FeedDay(label, tuple(entries)) for label, entries in days.items()]
