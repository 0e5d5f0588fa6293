from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from storefront.core.config import Settings, get_settings
from storefront.main import app


def test_ready_when_remote_api_is_configured(client: TestClient) -> None:
    response = client.get("/readyz")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


def test_not_ready_without_remote_api_key(client: TestClient) -> None:
    app.dependency_overrides[get_settings] = lambda: Settings(gemini_api_key="")

    response = client.get("/readyz")

    assert response.status_code == 503
    assert response.json()["status"] == "unavailable"


def test_request_metrics_use_route_templates(client: TestClient, alice_headers: dict) -> None:
    template = "/api/v1/sessions/{session_id}/state"

    def count() -> float:
        labels = {"method": "GET", "path": template, "status_code": "200"}
        return REGISTRY.get_sample_value("http_requests_total", labels) or 0.0

    before = count()
    for _ in range(2):
        session_id = client.post("/api/v1/sessions/", headers=alice_headers).json()["session_id"]
        client.get(f"/api/v1/sessions/{session_id}/state", headers=alice_headers)

    assert count() == before + 2
