from __future__ import annotations

from dataclasses import dataclass

from contactpro.lists.derive import SortDirection, SortSpec
from contactpro.records import EntityKind, get_mapping


@dataclass(frozen=True)
class ScreenConfig:
    """Which fields a list screen searches, filters and sorts on."""

    kind: EntityKind
    search_fields: tuple[str, ...]
    filter_keys: tuple[str, ...] = ()
    default_sort: SortSpec = SortSpec("created_at", SortDirection.DESCENDING)

    @property
    def sortable_fields(self) -> tuple[str, ...]:
        return ("id", *get_mapping(self.kind).field_names, "created_at", "modified_at")


SCREENS: dict[EntityKind, ScreenConfig] = {
    EntityKind.CONTACT: ScreenConfig(
        kind=EntityKind.CONTACT,
        search_fields=("name", "email", "company"),
    ),
    EntityKind.DEAL: ScreenConfig(
        kind=EntityKind.DEAL,
        search_fields=("title",),
        filter_keys=("stage",),
    ),
    EntityKind.TASK: ScreenConfig(
        kind=EntityKind.TASK,
        search_fields=("title", "description", "status"),
        filter_keys=("status", "priority"),
    ),
    EntityKind.COMPANY: ScreenConfig(
        kind=EntityKind.COMPANY,
        search_fields=("name", "industry", "email"),
        filter_keys=("industry",),
        default_sort=SortSpec("name", SortDirection.ASCENDING),
    ),
    EntityKind.USER: ScreenConfig(
        kind=EntityKind.USER,
        search_fields=("name", "email"),
        filter_keys=("role", "status"),
        default_sort=SortSpec("name", SortDirection.ASCENDING),
    ),
    EntityKind.ACTIVITY: ScreenConfig(
        kind=EntityKind.ACTIVITY,
        search_fields=("description",),
        filter_keys=("type",),
        default_sort=SortSpec("timestamp", SortDirection.DESCENDING),
    ),
}


def get_screen(kind: EntityKind | str) -> ScreenConfig:
    return SCREENS[EntityKind(kind)]
