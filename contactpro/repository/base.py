from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Protocol

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

from contactpro.context import get_correlation_id
from contactpro.core.errors import CrmError, NotFoundError
from contactpro.metrics import observe_repository_call
from contactpro.records import EntityKind, Record


logger = logging.getLogger("contactpro.repository")
tracer = trace.get_tracer("contactpro.repository")

SEARCH = "search"
FILTER = "filter"
SORT = "sort"
SERVER_QUERY_DIMENSIONS: frozenset[str] = frozenset({SEARCH, FILTER, SORT})


@dataclass(frozen=True)
class ListQuery:
    search: str = ""
    search_fields: tuple[str, ...] = ()
    filters: Mapping[str, Any] = field(default_factory=dict)
    sort_field: str | None = None
    descending: bool = False


class RecordRepository(Protocol):
    kind: EntityKind
    server_dimensions: frozenset[str]

    async def list(self, query: ListQuery | None = None) -> list[Record]: ...

    async def get_by_id(self, record_id: int) -> Record: ...

    async def create(self, fields: Mapping[str, Any]) -> Record: ...

    async def update(self, record_id: int, fields: Mapping[str, Any]) -> Record: ...

    async def delete(self, record_id: int) -> bool: ...


@asynccontextmanager
async def repository_call(kind: EntityKind, operation: str, record_id: int | None = None) -> AsyncIterator[Span]:
    started = time.perf_counter()
    with tracer.start_as_current_span(f"repository.{operation}") as span:
        span.set_attribute("entity", kind.value)
        if record_id is not None:
            span.set_attribute("record_id", record_id)
        correlation_id = get_correlation_id()
        if correlation_id:
            span.set_attribute("correlation_id", correlation_id)
        try:
            yield span
        except CrmError as exc:
            outcome = "not_found" if isinstance(exc, NotFoundError) else "error"
            duration = time.perf_counter() - started
            observe_repository_call(kind.value, operation, outcome, duration)
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            logger.warning(
                "repository.call_failed",
                extra={
                    "entity": kind.value,
                    "operation": operation,
                    "record_id": record_id,
                    "outcome": outcome,
                    "duration_ms": round(duration * 1000, 2),
                    "error": str(exc),
                },
            )
            raise
        observe_repository_call(kind.value, operation, "ok", time.perf_counter() - started)
