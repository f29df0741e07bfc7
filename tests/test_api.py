from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from contactpro.core.config import Settings
from contactpro.main import create_app
from contactpro.repository.registry import build_sql_repositories
from contactpro.workspace import Workspace


def _settings(**overrides) -> Settings:
    return Settings(record_backend="sql", otel_enabled=False, **overrides)


@pytest.fixture()
def client(session_factory: sessionmaker[Session]) -> Generator[TestClient, None, None]:
    settings = _settings(metrics_enabled=True)
    app = create_app(
        settings,
        workspace_factory=lambda s: Workspace(build_sql_repositories(session_factory), settings=s),
    )
    with TestClient(app) as test_client:
        yield test_client


def _create_contact(client: TestClient, name: str = "Ada Lovelace", email: str = "ada@example.test") -> dict:
    response = client.post("/api/screens/contact/records", json={"name": name, "email": email, "company": "Acme"})
    assert response.status_code == 201
    return response.json()["record"]


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "Contact Pro", "environment": "local", "backend": "sql"}


def test_validation_errors_use_error_envelope(client: TestClient) -> None:
    response = client.post(
        "/api/screens/contact/records",
        json={"name": "", "email": "not-an-email"},
        headers={"X-Correlation-Id": "corr-422"},
    )

    assert response.status_code == 422
    assert response.headers["x-correlation-id"] == "corr-422"
    body = response.json()
    assert body["code"] == "crm_contact_validation_failed"
    assert body["details"] == {"name": "Name is required", "email": "Email is invalid"}
    assert body["correlation_id"] == "corr-422"


def test_correlation_id_is_generated_when_missing(client: TestClient) -> None:
    response = client.get("/health")

    assert response.headers["x-correlation-id"]


def test_contact_crud_through_screen(client: TestClient) -> None:
    created = _create_contact(client)
    _create_contact(client, name="Grace Hopper", email="grace@example.test")

    screen = client.get("/api/screens/contact")
    assert screen.status_code == 200
    assert screen.json()["status"] == "ready"
    assert screen.json()["total"] == 2

    searched = client.get("/api/screens/contact", params={"search": "lovelace"}).json()
    assert [record["name"] for record in searched["records"]] == ["Ada Lovelace"]
    assert searched["total"] == 2

    sorted_view = client.get(
        "/api/screens/contact",
        params={"search": "", "sort": "name", "direction": "descending"},
    ).json()
    assert [record["name"] for record in sorted_view["records"]] == ["Grace Hopper", "Ada Lovelace"]

    updated = client.put(f"/api/screens/contact/records/{created['id']}", json={"company": "Analytical Engines"})
    assert updated.status_code == 200
    assert updated.json()["record"]["company"] == "Analytical Engines"

    deleted = client.delete(f"/api/screens/contact/records/{created['id']}")
    assert deleted.status_code == 204
    remaining = client.get("/api/screens/contact").json()
    assert [record["name"] for record in remaining["records"]] == ["Grace Hopper"]

    notifications = client.get("/api/notifications").json()["notifications"]
    assert [item["message"] for item in notifications] == [
        "Contact created successfully!",
        "Contact created successfully!",
        "Contact updated successfully!",
        "Contact deleted successfully!",
    ]
    assert client.get("/api/notifications").json()["notifications"] == []


def test_unknown_sort_field_is_rejected(client: TestClient) -> None:
    response = client.get("/api/screens/contact", params={"sort": "nickname"})

    assert response.status_code == 422
    assert response.json()["code"] == "crm_contact_screen_invalid_input"


def test_unknown_kind_is_rejected(client: TestClient) -> None:
    assert client.get("/api/screens/invoice").status_code == 422


def test_missing_record_returns_404(client: TestClient) -> None:
    response = client.put("/api/screens/deal/records/999", json={"title": "Ghost"})

    assert response.status_code == 404
    assert response.json()["code"] == "crm_deal_get_failed"
    assert response.json()["details"] == {"kind": "deal", "record_id": 999}


def test_failed_delete_returns_502_and_notifies(client: TestClient) -> None:
    response = client.delete("/api/screens/task/records/999")

    assert response.status_code == 502
    assert response.json()["code"] == "crm_task_delete_failed"
    notifications = client.get("/api/notifications").json()["notifications"]
    assert notifications[-1]["level"] == "error"
    assert notifications[-1]["message"] == "Failed to delete task"


def test_task_filters_from_query_params(client: TestClient) -> None:
    for title, status in (("Call", "open"), ("Demo", "completed")):
        response = client.post("/api/screens/task/records", json={"title": title, "status": status})
        assert response.status_code == 201

    body = client.get("/api/screens/task", params={"status": "completed"}).json()

    assert [record["title"] for record in body["records"]] == ["Demo"]
    assert body["filters"] == {"status": "completed"}


def test_pipeline_groups_deals_with_contact_names(client: TestClient) -> None:
    contact = _create_contact(client)
    for title, stage, value in (("A", "lead", 100), ("B", "lead", 200), ("C", "proposal", 50)):
        response = client.post(
            "/api/screens/deal/records",
            json={
                "title": title,
                "contact_id": contact["id"],
                "value": value,
                "stage": stage,
                "expected_close_date": "2024-09-30",
            },
        )
        assert response.status_code == 201

    body = client.get("/api/pipeline").json()

    stages = {stage["stage"]: stage for stage in body["stages"]}
    assert (stages["lead"]["count"], stages["lead"]["total_value"]) == (2, 300.0)
    assert (stages["proposal"]["count"], stages["proposal"]["total_value"]) == (1, 50.0)
    assert stages["qualified"]["count"] == 0
    assert stages["lead"]["deals"][0]["contact_name"] == "Ada Lovelace"
    assert body["total_value"] == 350.0


def test_dashboard_and_activity_feed(client: TestClient) -> None:
    contact = _create_contact(client)
    activity = client.post(
        "/api/screens/activity/records",
        json={"type": "call", "description": "Intro call", "contact_id": contact["id"]},
    )
    assert activity.status_code == 201

    dashboard = client.get("/api/dashboard")
    assert dashboard.status_code == 200
    stats = dashboard.json()["stats"]
    assert (stats["total_contacts"], stats["total_deals"], stats["pipeline_value_display"]) == (1, 0, "$0")

    feed = client.get("/api/activity-feed")
    assert feed.status_code == 200
    entries = feed.json()["days"][0]["entries"]
    assert entries[0]["contact_name"] == "Ada Lovelace"


def test_metrics_endpoint_exposes_request_counters(client: TestClient) -> None:
    client.get("/health")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "crm_repository_calls_total" in response.text


def test_metrics_endpoint_disabled_by_default(session_factory: sessionmaker[Session]) -> None:
    app = create_app(
        _settings(),
        workspace_factory=lambda s: Workspace(build_sql_repositories(session_factory), settings=s),
    )
    with TestClient(app) as test_client:
        assert test_client.get("/metrics").status_code == 404
