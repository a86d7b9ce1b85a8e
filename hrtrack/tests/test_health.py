"""
Tests for health and version endpoints
"""
from fastapi import status

from hrtrack.core.constants import SERVICE_NAME


def test_health_endpoint(client):
    """Test health endpoint returns correct response"""
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()

    assert data["status"] == "ok"
    assert data["service"] == SERVICE_NAME


def test_version_endpoint(client):
    """Version is public and reports the business timezone"""
    response = client.get("/api/v1/version")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()

    assert data["service"] == SERVICE_NAME
    assert "version" in data
    assert data["env"] in ["local", "staging", "prod"]
    assert data["timezone"] == "Asia/Kolkata"
