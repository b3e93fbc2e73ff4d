"""
Tests for health check endpoints.
"""


def test_health_check(client):
    """Test health check endpoint returns correct response."""
    response = client.get("/healthz")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "Inventra"


def test_health_check_content_type(client):
    """Test health check endpoint returns JSON."""
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"


def test_detailed_health_pings_database(client):
    """Test detailed health reports the database component."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["components"]["database"] == "ok"


def test_request_id_header(client):
    """Test every response carries a request id, echoing the caller's one."""
    response = client.get("/healthz", headers={"X-Request-Id": "req-123"})
    assert response.headers["X-Request-Id"] == "req-123"

    response = client.get("/healthz")
    assert response.headers["X-Request-Id"]
