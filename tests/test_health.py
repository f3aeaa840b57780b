from fastapi import status


def test_health_check(client):
    """Test the /health endpoint returns 200 and up status."""
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "up"
    assert "version" in data
    assert "timestamp" in data


def test_readiness_check(client):
    """Test the /readiness endpoint returns 200 and database status."""
    response = client.get("/readiness")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "ready"
    assert data["components"]["database"] == "connected"


def test_liveness_matches_health(client):
    response = client.get("/liveness")
    assert response.status_code == 200
    assert response.json()["status"] == "up"


def test_root_endpoint(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "HRMS Payroll & Leave API" in response.json()["message"]


def test_request_id_is_propagated(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert "X-Process-Time" in response.headers


def test_missing_tenant_headers_rejected(client):
    response = client.get("/api/employees")
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["errors"][0]["code"] == "TENANT_CONTEXT_MISSING"


def test_unknown_company_rejected(client):
    response = client.get("/api/employees", headers={"X-Company-ID": "999"})
    assert response.status_code == 401
