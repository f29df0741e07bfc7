from __future__ import annotations

import httpx
import pytest
from fakes import FakeRepository, make_record

from contactpro.core.config import Settings
from contactpro.core.events import InProcessEventBus
from contactpro.forms import SubmitStatus, build_advisory_sync
from contactpro.notifications import NOTIFICATION_EVENT, NotificationCenter
from contactpro.records import EntityKind
from contactpro.repository import RepositoryRegistry
from contactpro.workspace import Workspace


def _registry() -> RepositoryRegistry:
    return RepositoryRegistry({kind: FakeRepository(kind) for kind in EntityKind})


def test_advisory_sync_only_applies_to_new_contacts() -> None:
    sync = build_advisory_sync(
        Settings(advisory_sync_url="https://sync.example.test/contacts"),
        transport=httpx.MockTransport(lambda request: httpx.Response(200)),
    )
    workspace = Workspace(_registry(), advisory_sync=sync)
    contact = make_record(EntityKind.CONTACT, 1, name="Ada", email="ada@example.test")

    assert workspace.form(EntityKind.CONTACT)._advisory_sync is sync
    assert workspace.form(EntityKind.CONTACT, contact)._advisory_sync is None
    assert workspace.form(EntityKind.DEAL)._advisory_sync is None


@pytest.mark.asyncio
async def test_form_success_refreshes_owning_screen_and_pipeline() -> None:
    bus = InProcessEventBus()
    published: list[dict] = []
    bus.subscribe(NOTIFICATION_EVENT, lambda event: published.append(event.payload))
    workspace = Workspace(_registry(), notifications=NotificationCenter(bus=bus))
    await workspace.pipeline.load()

    form = workspace.form("deal")
    form.update(
        {
            "title": "Renewal",
            "contact_id": 1,
            "value": 900,
            "stage": "qualified",
            "expected_close_date": "2024-07-01",
        }
    )
    outcome = await form.submit()

    assert outcome.status is SubmitStatus.SAVED
    assert [record.get("title") for record in workspace.screen(EntityKind.DEAL).canonical] == ["Renewal"]
    assert workspace.pipeline.summary.bucket("qualified").total_value == 900.0
    assert published[-1]["message"] == "Deal created successfully!"

    await workspace.aclose()
    assert workspace.screen(EntityKind.DEAL).closed is True
