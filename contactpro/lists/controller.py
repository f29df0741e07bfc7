"""List screen state: canonical collection, view inputs and the derived view.

The controller is the only writer of its state. Presentation reads
snapshots and registers listeners; the repository is only touched from
``load``, ``refresh_after_mutation`` and ``remove``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from contactpro.core.errors import CrmError
from contactpro.lists.derive import SortDirection, SortSpec, derive_view, is_active_filter
from contactpro.lists.screens import ScreenConfig, get_screen
from contactpro.metrics import observe_list_load
from contactpro.notifications import NotificationCenter
from contactpro.records import Record, get_mapping
from contactpro.repository.base import FILTER, SEARCH, SORT, ListQuery, RecordRepository


logger = logging.getLogger("contactpro.lists")

Listener = Callable[["ListStateController"], None]


class ListStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class ListError:
    message: str
    detail: str
    retryable: bool = True


@dataclass(frozen=True)
class ListSnapshot:
    kind: str
    status: ListStatus
    records: tuple[Record, ...]
    total: int
    search: str
    filters: dict[str, Any]
    sort: SortSpec
    loading: bool
    removing: frozenset[int] = frozenset()
    error: ListError | None = None
    stale: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "status": self.status.value,
            "records": [record.to_dict() for record in self.records],
            "count": len(self.records),
            "total": self.total,
            "search": self.search,
            "filters": dict(self.filters),
            "sort": {"field": self.sort.field, "direction": self.sort.direction.value},
            "loading": self.loading,
            "removing": sorted(self.removing),
            "stale": self.stale,
            "error": (
                {"message": self.error.message, "detail": self.error.detail, "retryable": self.error.retryable}
                if self.error
                else None
            ),
        }


class ListStateController:
    def __init__(
        self,
        repository: RecordRepository,
        screen: ScreenConfig | None = None,
        *,
        notifications: NotificationCenter | None = None,
    ) -> None:
        self.repository = repository
        self.kind = repository.kind
        self.screen = screen or get_screen(self.kind)
        self.notifications = notifications or NotificationCenter()
        self.status = ListStatus.IDLE
        self.error: ListError | None = None

        self._mapping = get_mapping(self.kind)
        self._canonical: tuple[Record, ...] = ()
        self._view: tuple[Record, ...] = ()
        self._search = ""
        self._filters: dict[str, Any] = {}
        self._sort = self.screen.default_sort
        self._removing: set[int] = set()
        self._load_task: asyncio.Task[bool] | None = None
        self._listeners: list[Listener] = []
        self._stale = False
        self._closed = False

    @property
    def canonical(self) -> tuple[Record, ...]:
        return self._canonical

    @property
    def view(self) -> tuple[Record, ...]:
        return self._view

    @property
    def search(self) -> str:
        return self._search

    @property
    def filters(self) -> dict[str, Any]:
        return dict(self._filters)

    @property
    def sort(self) -> SortSpec:
        return self._sort

    @property
    def loading(self) -> bool:
        return self._load_task is not None and not self._load_task.done()

    @property
    def stale(self) -> bool:
        """True when a server-side view input changed since the last load."""
        return self._stale

    @property
    def closed(self) -> bool:
        return self._closed

    def is_removing(self, record_id: int) -> bool:
        return record_id in self._removing

    def find(self, record_id: int) -> Record | None:
        for record in self._canonical:
            if record.id == record_id:
                return record
        return None

    def snapshot(self) -> ListSnapshot:
        return ListSnapshot(
            kind=self.kind.value,
            status=self.status,
            records=self._view,
            total=len(self._canonical),
            search=self._search,
            filters=dict(self._filters),
            sort=self._sort,
            loading=self.loading,
            removing=frozenset(self._removing),
            error=self.error,
            stale=self._stale,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # view inputs

    def set_search_term(self, term: str | None) -> None:
        self._search = term or ""
        self._inputs_changed(SEARCH)

    def set_filter(self, key: str, value: Any) -> None:
        if key not in self.screen.filter_keys:
            raise ValueError(f"{self.kind.value} screen has no filter '{key}'")
        if is_active_filter(value):
            self._filters[key] = value.value if isinstance(value, Enum) else value
        else:
            self._filters.pop(key, None)
        self._inputs_changed(FILTER)

    def clear_filters(self) -> None:
        self._filters.clear()
        self._inputs_changed(FILTER)

    def set_sort(self, field_name: str, direction: SortDirection | str = SortDirection.ASCENDING) -> None:
        if field_name not in self.screen.sortable_fields:
            raise ValueError(f"{self.kind.value} screen cannot sort by '{field_name}'")
        self._sort = SortSpec(field_name, SortDirection(direction))
        self._inputs_changed(SORT)

    def toggle_sort(self, field_name: str) -> SortSpec:
        """Column-header behaviour: same field flips direction, a new field starts ascending."""
        if field_name == self._sort.field:
            self.set_sort(field_name, self._sort.direction.toggled())
        else:
            self.set_sort(field_name, SortDirection.ASCENDING)
        return self._sort

    async def refresh_view(self) -> bool:
        """Reload if a server-side input changed since the last load; otherwise a no-op."""
        if self._stale:
            return await self.load()
        return self.status is not ListStatus.ERROR

    # repository interactions

    async def load(self) -> bool:
        if self._closed:
            return False
        task = self._load_task
        if task is None or task.done():
            task = asyncio.ensure_future(self._run_load())
            self._load_task = task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if self._closed and task.cancelled():
                return False
            raise

    async def refresh_after_mutation(self) -> bool:
        # a load started before the mutation may not see it
        if self.loading and self._load_task is not None:
            try:
                await asyncio.shield(self._load_task)
            except asyncio.CancelledError:
                if self._closed:
                    return False
                raise
        return await self.load()

    async def remove(self, record_id: int) -> bool:
        if self._closed or record_id in self._removing:
            return False
        self._removing.add(record_id)
        self._emit()
        try:
            deleted = await self.repository.delete(record_id)
        except CrmError as exc:
            logger.warning(
                "list.remove_failed",
                extra={"entity": self.kind.value, "record_id": record_id, "error": str(exc)},
            )
            deleted = False
        finally:
            self._removing.discard(record_id)

        if not deleted:
            self.notifications.error(f"Failed to delete {self.kind.value}", entity=self.kind.value)
            self._emit()
            return False

        logger.info("list.record_removed", extra={"entity": self.kind.value, "record_id": record_id})
        self.notifications.success(f"{self.kind.label} deleted successfully!", entity=self.kind.value)
        await self.refresh_after_mutation()
        return True

    def close(self) -> None:
        """Cancel in-flight work and ignore anything that completes afterwards."""
        self._closed = True
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self._listeners.clear()

    async def _run_load(self) -> bool:
        self.status = ListStatus.LOADING
        self._emit()
        try:
            records = await self.repository.list(self._query())
        except CrmError as exc:
            if self._closed:
                return False
            self.status = ListStatus.ERROR
            self.error = ListError(message=f"Failed to load {self.kind.value}s", detail=str(exc))
            observe_list_load(self.kind.value, "error")
            logger.warning("list.load_failed", extra={"entity": self.kind.value, "error": str(exc)})
            self._emit()
            return False

        if self._closed:
            return False
        self._replace_canonical(records)
        self._stale = False
        self.status = ListStatus.READY
        self.error = None
        observe_list_load(self.kind.value, "ok")
        logger.info("list.loaded", extra={"entity": self.kind.value, "count": len(self._canonical)})
        self._emit()
        return True

    def _query(self) -> ListQuery | None:
        if not self.repository.server_dimensions:
            return None
        return ListQuery(
            search=self._search,
            search_fields=self.screen.search_fields,
            filters=dict(self._filters),
            sort_field=self._sort.field,
            descending=self._sort.descending,
        )

    def _replace_canonical(self, records: Iterable[Record]) -> None:
        seen: set[int] = set()
        unique: list[Record] = []
        for record in records:
            if record.id in seen:
                logger.warning("list.duplicate_record", extra={"entity": self.kind.value, "record_id": record.id})
                continue
            seen.add(record.id)
            unique.append(record)
        self._canonical = tuple(unique)
        self._derive()

    def _inputs_changed(self, dimension: str) -> None:
        if dimension in self.repository.server_dimensions:
            self._stale = True
        self._derive()
        self._emit()

    def _derive(self) -> None:
        self._view = tuple(
            derive_view(
                self._canonical,
                search=self._search,
                search_fields=self.screen.search_fields,
                filters=self._filters,
                sort=self._sort,
                field_type=self._mapping.field_type,
                skip=self.repository.server_dimensions,
            )
        )

    def _emit(self) -> None:
        for listener in list(self._listeners):
            listener(self)
