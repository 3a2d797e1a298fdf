"""HTTP surface tests using FastAPI's TestClient over the in-memory backend."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from campaign_data.api.main import create_app
from campaign_data.core.errors import ConfigurationError, StorageError
from campaign_data.core.settings import get_app_settings
from campaign_data.repositories.base import Repository

TENANT_A = "tenant-a"


@pytest.fixture(autouse=True)
def restore_root_logging():
    """create_app reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def make_client(backend) -> TestClient:
    settings = get_app_settings(ACTIVE_TENANT_ID=TENANT_A, STORAGE_BACKEND="memory", LOG_LEVEL="WARNING")
    return TestClient(create_app(settings, backend), raise_server_exceptions=False)


@pytest.fixture
def client(backend) -> TestClient:
    return make_client(backend)


@pytest_asyncio.fixture
async def seeded_demands(backend, tenant_a) -> None:
    demands = Repository("demands", backend, tenant_a)
    for title, status in (("Street lights", "Open"), ("Clinic", "Open"), ("Roof", "Done")):
        await demands.create({"title": title, "status": status})


class TestHealth:
    """Health endpoint and request middleware."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["message"] == "Healthy"
        assert response.headers["X-Correlation-ID"]

    def test_correlation_id_is_echoed(self, client: TestClient) -> None:
        response = client.get("/api/v1/health", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_missing_tenant_fails_at_startup(self, monkeypatch) -> None:
        monkeypatch.delenv("ACTIVE_TENANT_ID", raising=False)
        with pytest.raises(ConfigurationError):
            create_app()


class TestRegionRoutes:
    """Region map, statistics and edits over HTTP."""

    def test_region_map(self, seeded, client: TestClient) -> None:
        body = client.get("/api/v1/regions").json()
        assert [r["name"] for r in body["regions"]] == ["Empty", "North", "South"]
        assert len(body["municipalities"]) == 4
        assert body["coordinators"][0]["name"] == "Ana Souza"

    def test_statistics(self, seeded, client: TestClient) -> None:
        response = client.get(f"/api/v1/regions/{seeded.north}/statistics")
        assert response.status_code == 200
        body = response.json()
        assert body["population_total"] == 650
        assert body["density"] == pytest.approx(10.0)
        assert body["most_populous"] == {"name": "Beta", "population": 500}

    def test_municipalities_of_region(self, seeded, client: TestClient) -> None:
        response = client.get(f"/api/v1/regions/{seeded.north}/municipalities")
        assert [m["name"] for m in response.json()] == ["Alpha", "Beta", "Gamma"]

    def test_unknown_region_uses_error_envelope(self, client: TestClient) -> None:
        response = client.get("/api/v1/regions/missing/statistics", headers={"X-Correlation-ID": "cid-9"})
        assert response.status_code == 404
        body = response.json()
        assert body["status"] == 404
        assert body["error"]["type"] == "not_found"
        assert body["correlation_id"] == "cid-9"
        assert body["path"] == "/api/v1/regions/missing/statistics"
        assert body["method"] == "GET"

    def test_tenant_header_is_ignored(self, seeded, client: TestClient) -> None:
        response = client.get(
            f"/api/v1/regions/{seeded.other_tenant_region}/statistics",
            headers={"X-Tenant-ID": "tenant-b"},
        )
        assert response.status_code == 404
        regions = client.get("/api/v1/regions", headers={"X-Tenant-ID": "tenant-b"}).json()["regions"]
        assert {r["tenant_id"] for r in regions} == {TENANT_A}

    def test_update_color(self, seeded, client: TestClient) -> None:
        response = client.put(f"/api/v1/regions/{seeded.north}/color", json={"color": "#123ABC"})
        assert response.status_code == 200
        assert response.json()["details"] == {"region_id": seeded.north, "color": "#123ABC"}

        bad = client.put(f"/api/v1/regions/{seeded.north}/color", json={"color": "blue"})
        assert bad.status_code == 422
        assert bad.json()["error"]["type"] == "validation_error"

    def test_update_coordinator(self, seeded, client: TestClient) -> None:
        ok = client.put(f"/api/v1/regions/{seeded.south}/coordinator", json={"coordinator_id": seeded.coordinator})
        assert ok.status_code == 200
        missing = client.put(f"/api/v1/regions/{seeded.south}/coordinator", json={"coordinator_id": "nobody"})
        assert missing.status_code == 404


class TestDemandRoutes:
    """Demand listing and summary."""

    def test_list_by_status(self, seeded_demands, client: TestClient) -> None:
        response = client.get(
            "/api/v1/demands", params={"status": "open", "order_by": "title", "order_direction": "asc"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["total_count"] == 2
        assert [d["title"] for d in body["items"]] == ["Clinic", "Street lights"]

    def test_unknown_status_is_rejected(self, client: TestClient) -> None:
        response = client.get("/api/v1/demands", params={"status": "archived"})
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Request validation failed"

    def test_unknown_order_field(self, seeded_demands, client: TestClient) -> None:
        response = client.get("/api/v1/demands", params={"order_by": "password"})
        assert response.status_code == 422

    def test_status_summary(self, seeded_demands, client: TestClient) -> None:
        response = client.get("/api/v1/demands/status-summary")
        assert response.json() == [{"status": "Done", "count": 1}, {"status": "Open", "count": 2}]


class TestFailures:
    """Backend failures surface as generic errors."""

    def test_storage_error_is_503_without_driver_detail(self) -> None:
        backend = AsyncMock()
        backend.get.side_effect = StorageError("Could not read regions", cause=OSError("db.internal:5432 refused"))
        response = make_client(backend).get("/api/v1/regions/abc/statistics")
        assert response.status_code == 503
        assert response.json()["error"] == {
            "type": "storage_error",
            "message": "Could not read regions",
            "details": None,
        }
        assert "db.internal" not in response.text

    def test_unexpected_error_is_500(self) -> None:
        backend = AsyncMock()
        backend.select.side_effect = RuntimeError("boom")
        response = make_client(backend).get("/api/v1/demands")
        assert response.status_code == 500
        assert response.json()["error"]["type"] == "internal_error"
        assert "boom" not in response.text
