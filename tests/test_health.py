def test_health_reports_uptime_and_database(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["status"] == "UP"
    assert body["data"]["database"] == "UP"
    assert body["data"]["environment"] == "test"
    assert body["data"]["uptime"] >= 0


def test_config_masks_api_key(client):
    response = client.get("/api/config")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["api_key"] == "sk-test-pr...0001"
    assert data["available_keys"] == 2
    assert "version" in data


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"status": "error", "data": None, "message": "Not Found"}


def test_root(client):
    response = client.get("/")
    assert response.json()["data"]["name"] == "Stock Sense API"
