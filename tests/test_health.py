# tests/test_health.py
from fastapi import status


def test_root_describes_service(client) -> None:
    """The root endpoint advertises the service name, version, and features."""
    response = client.get("/")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"]
    assert "delegated-auth" in data["features"]


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}
