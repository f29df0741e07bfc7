from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from contactpro.core.errors import NetworkOrServerError, NotFoundError
from contactpro.records import EntityKind, Record, get_mapping
from contactpro.records.mapping import parse_datetime
from contactpro.repository.base import ListQuery, repository_call
from contactpro.repository.models import CRMRecord, utcnow


T = TypeVar("T")

# A StaticPool engine hands every thread the same SQLite connection.
_shared_lock = threading.Lock()


def _jsonable(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value.isoformat() if isinstance(value, (date, datetime)) else value for key, value in values.items()}


class SqlRecordRepository:
    """Local record store: one `crm_record` row per record, fields kept as JSON.

    Session work runs in a worker thread via ``asyncio.to_thread`` so a pending
    query never stalls the event loop.
    """

    server_dimensions: frozenset[str] = frozenset()

    def __init__(
        self,
        kind: EntityKind | str,
        session_factory: Callable[[], Session],
        *,
        lock: threading.Lock | None = None,
    ) -> None:
        self.kind = EntityKind(kind)
        self.mapping = get_mapping(self.kind)
        self._session_factory = session_factory
        self._lock = lock or _shared_lock

    async def list(self, query: ListQuery | None = None) -> list[Record]:
        async with repository_call(self.kind, "list") as span:
            records = await self._run("list", self._list)
            span.set_attribute("count", len(records))
            return records

    async def get_by_id(self, record_id: int) -> Record:
        async with repository_call(self.kind, "get", record_id):
            return await self._run("get", lambda session: self._to_record(self._load(session, record_id)))

    async def create(self, fields: Mapping[str, Any]) -> Record:
        async with repository_call(self.kind, "create"):
            return await self._run("create", lambda session: self._create(session, fields))

    async def update(self, record_id: int, fields: Mapping[str, Any]) -> Record:
        async with repository_call(self.kind, "update", record_id):
            return await self._run("update", lambda session: self._update(session, record_id, fields))

    async def delete(self, record_id: int) -> bool:
        async with repository_call(self.kind, "delete", record_id):
            return await self._run("delete", lambda session: self._delete(session, record_id))

    def _list(self, session: Session) -> list[Record]:
        rows = session.scalars(
            select(CRMRecord)
            .where(CRMRecord.kind == self.kind.value)
            .order_by(CRMRecord.created_at.desc(), CRMRecord.id.desc())
        ).all()
        return [self._to_record(row) for row in rows]

    def _create(self, session: Session, fields: Mapping[str, Any]) -> Record:
        now = utcnow()
        row = CRMRecord(
            kind=self.kind.value,
            data=_jsonable(self.mapping.coerce_fields(fields)),
            created_at=now,
            modified_at=now,
        )
        session.add(row)
        session.commit()
        session.refresh(row)
        return self._to_record(row)

    def _update(self, session: Session, record_id: int, fields: Mapping[str, Any]) -> Record:
        row = self._load(session, record_id)
        row.data = {**row.data, **_jsonable(self.mapping.coerce_fields(fields))}
        row.modified_at = utcnow()
        session.commit()
        session.refresh(row)
        return self._to_record(row)

    def _delete(self, session: Session, record_id: int) -> bool:
        row = session.get(CRMRecord, int(record_id))
        if row is None or row.kind != self.kind.value:
            return False
        session.delete(row)
        session.commit()
        return True

    def _load(self, session: Session, record_id: int) -> CRMRecord:
        row = session.get(CRMRecord, int(record_id))
        if row is None or row.kind != self.kind.value:
            raise NotFoundError(self.kind.value, record_id)
        return row

    def _to_record(self, row: CRMRecord) -> Record:
        coerced = self.mapping.coerce_fields(row.data)
        return Record(
            kind=self.kind,
            id=row.id,
            fields={name: coerced.get(name) for name in self.mapping.field_names},
            created_at=parse_datetime(row.created_at),
            modified_at=parse_datetime(row.modified_at),
        )

    async def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._in_session, operation, work)

    def _in_session(self, operation: str, work: Callable[[Session], T]) -> T:
        with self._lock:
            session = self._session_factory()
            try:
                return work(session)
            except SQLAlchemyError as exc:
                session.rollback()
                raise NetworkOrServerError(self.kind.value, operation, str(exc)) from exc
            finally:
                session.close()
