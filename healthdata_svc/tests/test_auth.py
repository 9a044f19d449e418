"""
Tests for API authentication and requester resolution.

These run against the production app (main.app) with the real dependency
chain; the database lives in the temporary directory set up by conftest.
"""
import pytest
from fastapi.testclient import TestClient

from core.config import API_KEY
from core.dependencies import get_user_repository


@pytest.fixture
def authenticated_client():
    """Create a test client for the production app."""
    from main import app
    return TestClient(app)


@pytest.fixture
def registered_patient():
    """A patient in the production user directory."""
    return get_user_repository().add("Auth Test Patient", "patient")


class TestAuthentication:
    """Test suite for API key authentication."""

    def test_missing_api_key_returns_401(self, authenticated_client):
        """Test that requests without API key return 401."""
        response = authenticated_client.get("/api/v1/health-data/patients/1")
        assert response.status_code == 401
        assert "Missing API key" in response.json()["detail"]

    def test_invalid_api_key_returns_403(self, authenticated_client):
        """Test that requests with invalid API key return 403."""
        response = authenticated_client.get(
            "/api/v1/health-data/patients/1",
            headers={"X-API-Key": "invalid-key"}
        )
        assert response.status_code == 403
        assert "Invalid API key" in response.json()["detail"]

    def test_analytics_requires_api_key(self, authenticated_client):
        response = authenticated_client.get("/api/v1/analytics/patients/1/vitals-trends")
        assert response.status_code == 401

    def test_health_endpoints_no_auth_required(self, authenticated_client):
        """Test that the root and health endpoints don't require authentication."""
        response = authenticated_client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "Health Data Service API"

        assert authenticated_client.get("/health").status_code == 200


class TestRequesterResolution:
    """Test suite for the X-User-Id header."""

    def test_missing_user_header_returns_401(self, authenticated_client):
        response = authenticated_client.get(
            "/api/v1/health-data/patients/1",
            headers={"X-API-Key": API_KEY}
        )
        assert response.status_code == 401
        assert "X-User-Id" in response.json()["detail"]

    def test_malformed_user_id_returns_401(self, authenticated_client):
        response = authenticated_client.get(
            "/api/v1/health-data/patients/1",
            headers={"X-API-Key": API_KEY, "X-User-Id": "abc"}
        )
        assert response.status_code == 401

    def test_unknown_user_returns_401(self, authenticated_client):
        response = authenticated_client.get(
            "/api/v1/health-data/patients/1",
            headers={"X-API-Key": API_KEY, "X-User-Id": "987654321"}
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Unknown user"

    def test_known_user_is_served(self, authenticated_client, registered_patient):
        headers = {"X-API-Key": API_KEY, "X-User-Id": str(registered_patient.id)}

        created = authenticated_client.post(
            "/api/v1/health-data",
            json={"vitals": {"heartRate": {"value": 72}}},
            headers=headers
        )
        assert created.status_code == 201
        assert created.json()["patientId"] == registered_patient.id

        listed = authenticated_client.get(
            f"/api/v1/health-data/patients/{registered_patient.id}",
            headers=headers
        )
        assert listed.status_code == 200
        assert listed.json()["pagination"]["totalRecords"] == 1

    def test_response_carries_request_id(self, authenticated_client, registered_patient):
        response = authenticated_client.get(
            f"/api/v1/health-data/patients/{registered_patient.id}",
            headers={
                "X-API-Key": API_KEY,
                "X-User-Id": str(registered_patient.id),
                "X-Request-ID": "trace-123",
            }
        )
        assert response.headers["X-Request-ID"] == "trace-123"
