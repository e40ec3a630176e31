# tests/test_health.py
from fastapi import status
from fastapi.testclient import TestClient

from tests.fakes import FakePostgrest


def test_health_reports_provider_and_scheduler(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "status": "ok",
        "data_provider": "supabase",
        "scheduler_running": False,
        "store": {"requests": 0, "errors": 0, "average_response_ms": 0.0},
    }


def test_health_reports_store_traffic(client: TestClient, fake: FakePostgrest) -> None:
    fake.add_post(fake.add_user("alice"))
    assert client.get("/api/v1/feed/home").status_code == status.HTTP_200_OK

    store = client.get("/health").json()["store"]

    assert store["requests"] >= 2
    assert store["errors"] == 0
    assert store["average_response_ms"] >= 0.0


def test_root_lists_docs(client: TestClient) -> None:
    data = client.get("/").json()

    assert data["name"] == "Upvista Core"
    assert data["docs"] == "/docs"
