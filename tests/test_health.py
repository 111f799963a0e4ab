"""
Health and version endpoint tests
"""
from fastapi.testclient import TestClient

from thirstee import __version__
from thirstee.main import app

client = TestClient(app)


def test_health_endpoint_returns_200():
    """Test that /health returns HTTP 200"""
    response = client.get("/health")
    assert response.status_code == 200


def test_health_endpoint_returns_ok_status():
    """Test that /health returns status: ok"""
    response = client.get("/health")
    data = response.json()
    assert data["status"] == "ok"


def test_version_endpoint_reports_package_version():
    """Test that /version matches the installed package"""
    response = client.get("/version")
    data = response.json()
    assert data["version"] == __version__
    assert data["name"] == "Thirstee"
