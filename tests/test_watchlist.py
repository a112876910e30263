import pytest


@pytest.fixture
def stock_ids(client, admin_headers):
    ids = []
    for symbol, name in [("TCS", "Tata Consultancy Services"), ("INFY", "Infosys")]:
        response = client.post("/api/catalog/stocks", json={"symbol": symbol, "company_name": name}, headers=admin_headers)
        ids.append(response.json()["data"]["id"])
    return ids


def test_watchlist_requires_token(client):
    assert client.get("/api/watchlist").status_code == 401
    assert client.post("/api/watchlist", json={"stock_id": 1}).status_code == 401


def test_add_list_and_remove(client, user_headers, stock_ids):
    tcs, infy = stock_ids

    response = client.post("/api/watchlist", json={"stock_id": infy}, headers=user_headers)
    assert response.status_code == 201
    assert response.json()["message"] == "Stock added to watchlist"
    assert response.json()["data"]["stock"]["symbol"] == "INFY"
    client.post("/api/watchlist", json={"stock_id": tcs}, headers=user_headers)

    items = client.get("/api/watchlist", headers=user_headers).json()["data"]
    assert [item["stock"]["symbol"] for item in items] == ["INFY", "TCS"]

    response = client.delete(f"/api/watchlist/{infy}", headers=user_headers)
    assert response.status_code == 200
    items = client.get("/api/watchlist", headers=user_headers).json()["data"]
    assert [item["stock_id"] for item in items] == [tcs]


def test_duplicate_and_unknown_stock(client, user_headers, stock_ids):
    client.post("/api/watchlist", json={"stock_id": stock_ids[0]}, headers=user_headers)

    assert client.post("/api/watchlist", json={"stock_id": stock_ids[0]}, headers=user_headers).status_code == 409
    assert client.post("/api/watchlist", json={"stock_id": 999}, headers=user_headers).status_code == 404
    assert client.post("/api/watchlist", json={}, headers=user_headers).status_code == 422


def test_remove_missing_entry(client, user_headers, stock_ids):
    response = client.delete(f"/api/watchlist/{stock_ids[0]}", headers=user_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Stock not in watchlist"


def test_watchlists_are_per_user(client, user_headers, admin_headers, stock_ids):
    client.post("/api/watchlist", json={"stock_id": stock_ids[0]}, headers=user_headers)

    assert client.get("/api/watchlist", headers=admin_headers).json()["data"] == []


def test_deleting_stock_clears_watchlist(client, user_headers, admin_headers, stock_ids):
    client.post("/api/watchlist", json={"stock_id": stock_ids[0]}, headers=user_headers)

    client.delete(f"/api/catalog/stocks/{stock_ids[0]}", headers=admin_headers)

    assert client.get("/api/watchlist", headers=user_headers).json()["data"] == []
