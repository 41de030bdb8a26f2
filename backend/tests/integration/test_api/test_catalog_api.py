"""
Integration tests for the workflow and department catalog API.
"""

import mongomock
import pytest
from fastapi.testclient import TestClient

from ticketflow.api.deps import get_catalog_service
from ticketflow.main import app
from ticketflow.services.catalog_service import CatalogService

from ...conftest import HOURLY_WORKFLOW_ID, TWO_STEP_WORKFLOW_ID

API = "/api/v1"


@pytest.fixture
def client(db, catalog):
    app.dependency_overrides[get_catalog_service] = lambda: CatalogService(db)
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestWorkflowsApi:
    """Tests for /workflows."""

    def test_list(self, client):
        response = client.get(f"{API}/workflows")

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert [w["name"] for w in body["items"]] == ["Hourly", "Two Step"]
        assert body["items"][0]["total_sla"] == {"value": 12, "unit": "hours"}
        assert body["items"][0]["total_sla_display"] == "12h"

    def test_default(self, client):
        response = client.get(f"{API}/workflows/default")

        assert response.status_code == 200
        assert response.json()["workflow_id"] == TWO_STEP_WORKFLOW_ID

    def test_get(self, client):
        response = client.get(f"{API}/workflows/{HOURLY_WORKFLOW_ID}")

        assert response.status_code == 200
        assert [s["department_name"] for s in response.json()["steps"]] == ["Security", "Intake"]

    def test_unknown(self, client):
        response = client.get(f"{API}/workflows/WF-missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "WORKFLOW_NOT_FOUND"

    def test_no_default_configured(self):
        empty = mongomock.MongoClient(tz_aware=True)["empty"]
        app.dependency_overrides[get_catalog_service] = lambda: CatalogService(empty)
        try:
            response = TestClient(app).get(f"{API}/workflows/default")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 404


class TestDepartmentsApi:
    """Tests for /departments."""

    def test_list(self, client):
        response = client.get(f"{API}/departments")

        assert response.status_code == 200
        body = response.json()
        assert [d["name"] for d in body["items"]] == ["Intake", "Review", "Security"]
        assert body["items"][0]["ticket_types"][0]["name"] == "Onboarding"

    def test_get(self, client):
        response = client.get(f"{API}/departments/DEPT-security")

        assert response.status_code == 200
        assert response.json()["ticket_types"][0]["workflow_id"] == HOURLY_WORKFLOW_ID

    def test_unknown(self, client):
        response = client.get(f"{API}/departments/DEPT-missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "DEPARTMENT_NOT_FOUND"


class TestRoot:
    """Tests for the unversioned endpoints."""

    def test_root(self):
        response = TestClient(app).get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "Ticket Workflow & SLA Engine"
        assert "X-Correlation-Id" in response.headers
