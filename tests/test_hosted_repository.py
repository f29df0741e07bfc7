from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from contactpro.core.config import Settings
from contactpro.core.errors import NetworkOrServerError, NotFoundError
from contactpro.records import EntityKind
from contactpro.repository.base import ListQuery
from contactpro.repository.hosted import HostedRecordRepository, build_hosted_client


Handler = Callable[[httpx.Request], httpx.Response]


def _repository(handler: Handler, kind: EntityKind = EntityKind.CONTACT, **kwargs) -> HostedRecordRepository:
    settings = Settings(hosted_project_id="proj-1", hosted_public_key="pk-1")
    client = build_hosted_client(settings, transport=httpx.MockTransport(handler))
    return HostedRecordRepository(kind, client, **kwargs)


def _contact_row(record_id: int, name: str) -> dict:
    return {
        "Id": record_id,
        "name_c": name,
        "email_c": f"{name.lower()}@example.test",
        "phone_c": None,
        "company_c": "Acme",
        "CreatedDate": "2024-05-01T09:00:00Z",
    }


@pytest.mark.asyncio
async def test_list_pages_until_short_page_and_maps_wire_names() -> None:
    requests: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/tables/contact_c/records/query"
        assert request.headers["X-Apper-Project-Id"] == "proj-1"
        body = json.loads(request.content)
        requests.append(body)
        offset = body["pagingInfo"]["offset"]
        rows = [_contact_row(1, "Ada"), _contact_row(2, "Grace")] if offset == 0 else [_contact_row(3, "Linus")]
        return httpx.Response(200, json={"success": True, "data": rows})

    repository = _repository(handler, page_size=2)

    records = await repository.list()

    assert [record.id for record in records] == [1, 2, 3]
    assert records[0].get("name") == "Ada"
    assert records[0].get("phone") is None
    assert records[0].created_at is not None
    assert [body["pagingInfo"]["offset"] for body in requests] == [0, 2]
    assert requests[0]["orderBy"] == [{"fieldName": "CreatedDate", "sorttype": "DESC"}]
    assert {"field": {"Name": "email_c"}} in requests[0]["fields"]


@pytest.mark.asyncio
async def test_server_query_pushes_search_filters_and_sort() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "data": []})

    repository = _repository(handler, EntityKind.USER, server_query=True)
    query = ListQuery(
        search=" amy ",
        search_fields=("name", "email"),
        filters={"role": "Admin"},
        sort_field="name",
        descending=True,
    )

    assert await repository.list(query) == []

    body = bodies[0]
    conditions = body["whereGroups"][0]["subGroups"][0]["conditions"]
    assert [condition["fieldName"] for condition in conditions] == ["name_c", "email_c"]
    assert conditions[0]["values"] == ["amy"]
    assert body["where"] == [{"FieldName": "role_c", "Operator": "ExactMatch", "Values": ["Admin"]}]
    assert body["orderBy"] == [{"fieldName": "name_c", "sorttype": "DESC"}]


@pytest.mark.asyncio
async def test_query_is_ignored_without_server_query() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "data": []})

    repository = _repository(handler)
    await repository.list(ListQuery(search="ada", search_fields=("name",)))

    assert "whereGroups" not in bodies[0]
    assert repository.server_dimensions == frozenset()


@pytest.mark.asyncio
async def test_get_missing_record_raises_not_found() -> None:
    repository = _repository(lambda request: httpx.Response(404, json={"success": False}))

    with pytest.raises(NotFoundError) as excinfo:
        await repository.get_by_id(7)

    assert excinfo.value.record_id == 7


@pytest.mark.asyncio
async def test_unsuccessful_payload_raises_network_or_server_error() -> None:
    repository = _repository(lambda request: httpx.Response(200, json={"success": False, "message": "quota"}))

    with pytest.raises(NetworkOrServerError) as excinfo:
        await repository.list()

    assert excinfo.value.operation == "list"
    assert "quota" in str(excinfo.value)


@pytest.mark.asyncio
async def test_server_error_status_is_reported() -> None:
    repository = _repository(lambda request: httpx.Response(503, text="unavailable"))

    with pytest.raises(NetworkOrServerError) as excinfo:
        await repository.delete(3)

    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_transport_failure_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    repository = _repository(handler)

    with pytest.raises(NetworkOrServerError, match="connection refused"):
        await repository.list()


@pytest.mark.asyncio
async def test_create_sends_wire_fields_and_returns_record() -> None:
    sent: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        sent.append(json.loads(request.content))
        row = {"Id": 12, "Title_c": "Renewal", "ContactId_c": {"Id": 5, "Name": "Ada"}, "Value_c": "1500"}
        return httpx.Response(200, json={"success": True, "results": [{"success": True, "data": row}]})

    repository = _repository(handler, EntityKind.DEAL)

    record = await repository.create({"title": "Renewal", "contact_id": "5", "value": 1500, "notes": "dropped"})

    assert sent[0] == {"records": [{"Title_c": "Renewal", "ContactId_c": 5, "Value_c": 1500.0}]}
    assert (record.id, record.get("contact_id"), record.get("value")) == (12, 5, 1500.0)


@pytest.mark.asyncio
async def test_rejected_update_raises_with_server_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"success": True, "results": [{"success": False, "message": "Title is locked"}]},
        )

    repository = _repository(handler, EntityKind.DEAL)

    with pytest.raises(NetworkOrServerError, match="Title is locked"):
        await repository.update(12, {"title": "New"})


@pytest.mark.asyncio
async def test_delete_reports_per_record_outcome() -> None:
    outcomes = iter([True, False])

    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"RecordIds": [4]}
        return httpx.Response(200, json={"success": True, "results": [{"success": next(outcomes)}]})

    repository = _repository(handler)

    assert await repository.delete(4) is True
    assert await repository.delete(4) is False


@pytest.mark.asyncio
async def test_delete_without_confirmed_result_counts_as_not_deleted() -> None:
    repository = _repository(lambda request: httpx.Response(200, json={"success": True}))

    assert await repository.delete(4) is False


@pytest.mark.parametrize(
    "row",
    [{"name_c": "Ada"}, {"Id": "not-a-number", "name_c": "Ada"}, {"Id": None}, "Ada"],
)
@pytest.mark.asyncio
async def test_malformed_rows_are_reported_as_server_errors(row: object) -> None:
    repository = _repository(lambda request: httpx.Response(200, json={"success": True, "data": [row]}))

    with pytest.raises(NetworkOrServerError, match="Malformed record") as excinfo:
        await repository.list()

    assert excinfo.value.operation == "list"


@pytest.mark.asyncio
async def test_malformed_create_result_is_reported_as_server_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "results": [{"success": True, "data": {"Title_c": "x"}}]})

    repository = _repository(handler, EntityKind.DEAL)

    with pytest.raises(NetworkOrServerError, match="Malformed record") as excinfo:
        await repository.create({"title": "x"})

    assert excinfo.value.operation == "create"
