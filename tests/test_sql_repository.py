from __future__ import annotations

import asyncio
import threading
from datetime import date

import pytest
from sqlalchemy.orm import Session, sessionmaker

from contactpro.core.errors import NotFoundError
from contactpro.records import EntityKind
from contactpro.repository.registry import build_sql_repositories
from contactpro.repository.sql import SqlRecordRepository


@pytest.mark.asyncio
async def test_create_list_and_get_round_trip(session_factory: sessionmaker[Session]) -> None:
    deals = SqlRecordRepository(EntityKind.DEAL, session_factory)

    created = await deals.create(
        {"title": "Renewal", "contact_id": "5", "value": "1500", "expected_close_date": date(2024, 6, 30)}
    )
    fetched = await deals.get_by_id(created.id)

    assert fetched.get("contact_id") == 5
    assert fetched.get("value") == 1500.0
    assert fetched.get("expected_close_date") == date(2024, 6, 30)
    assert fetched.get("stage") is None
    assert fetched.created_at is not None
    assert [record.id for record in await deals.list()] == [created.id]


@pytest.mark.asyncio
async def test_kinds_are_isolated(session_factory: sessionmaker[Session]) -> None:
    registry = build_sql_repositories(session_factory)
    contact = await registry[EntityKind.CONTACT].create({"name": "Ada", "email": "ada@example.test"})

    assert await registry[EntityKind.TASK].list() == []
    with pytest.raises(NotFoundError):
        await registry[EntityKind.TASK].get_by_id(contact.id)
    assert await registry[EntityKind.TASK].delete(contact.id) is False


@pytest.mark.asyncio
async def test_list_is_newest_first(session_factory: sessionmaker[Session]) -> None:
    contacts = SqlRecordRepository(EntityKind.CONTACT, session_factory)
    first = await contacts.create({"name": "Ada"})
    second = await contacts.create({"name": "Grace"})

    assert [record.id for record in await contacts.list()] == [second.id, first.id]


@pytest.mark.asyncio
async def test_update_merges_fields_and_bumps_modified_at(session_factory: sessionmaker[Session]) -> None:
    companies = SqlRecordRepository(EntityKind.COMPANY, session_factory)
    created = await companies.create({"name": "Acme", "industry": "Retail"})

    updated = await companies.update(created.id, {"industry": "Software"})

    assert (updated.get("name"), updated.get("industry")) == ("Acme", "Software")
    assert updated.modified_at is not None
    assert updated.modified_at >= created.modified_at


@pytest.mark.asyncio
async def test_update_and_delete_missing_record(session_factory: sessionmaker[Session]) -> None:
    users = SqlRecordRepository(EntityKind.USER, session_factory)

    with pytest.raises(NotFoundError):
        await users.update(404, {"name": "Nobody"})
    assert await users.delete(404) is False


@pytest.mark.asyncio
async def test_delete_removes_record(session_factory: sessionmaker[Session]) -> None:
    activities = SqlRecordRepository(EntityKind.ACTIVITY, session_factory)
    created = await activities.create({"type": "call", "description": "Intro call"})

    assert await activities.delete(created.id) is True
    assert await activities.list() == []


@pytest.mark.asyncio
async def test_pending_query_does_not_block_the_event_loop(session_factory: sessionmaker[Session]) -> None:
    entered = threading.Event()
    release = threading.Event()

    def gated_session() -> Session:
        entered.set()
        release.wait(timeout=5)
        return session_factory()

    contacts = SqlRecordRepository(EntityKind.CONTACT, gated_session, lock=threading.Lock())
    pending = asyncio.create_task(contacts.list())

    while not entered.is_set():
        await asyncio.sleep(0.01)
    await asyncio.sleep(0.01)

    assert not pending.done()
    release.set()
    assert await pending == []
