import pytest

from app.services.catalog import StockCatalogService

STOCK = {"symbol": "tcs", "company_name": "Tata Consultancy Services", "current_price": 3500.5}


@pytest.fixture
def it_sector(db_manager):
    with db_manager.get_session() as session:
        return StockCatalogService(session).get_or_create_sector("Information Technology").id


def test_create_requires_token(client):
    response = client.post("/api/catalog/stocks", json=STOCK)
    assert response.status_code == 401


def test_create_requires_admin_role(client, user_headers):
    response = client.post("/api/catalog/stocks", json=STOCK, headers=user_headers)

    assert response.status_code == 403
    assert response.json()["message"] == "Forbidden - Insufficient privileges"


def test_admin_creates_stock(client, admin_headers, it_sector):
    response = client.post("/api/catalog/stocks", json={**STOCK, "sector_id": it_sector}, headers=admin_headers)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["symbol"] == "TCS"
    assert data["sector_name"] == "Information Technology"


def test_duplicate_symbol_conflicts(client, admin_headers):
    client.post("/api/catalog/stocks", json=STOCK, headers=admin_headers)
    response = client.post("/api/catalog/stocks", json={**STOCK, "symbol": "TCS"}, headers=admin_headers)
    assert response.status_code == 409


def test_unknown_sector(client, admin_headers):
    response = client.post("/api/catalog/stocks", json={**STOCK, "sector_id": 999}, headers=admin_headers)
    assert response.status_code == 404


def test_list_with_search_and_paging(client, admin_headers):
    for symbol, name in [("INFY", "Infosys"), ("TCS", "Tata Consultancy Services"), ("TATAMOTORS", "Tata Motors")]:
        client.post("/api/catalog/stocks", json={"symbol": symbol, "company_name": name}, headers=admin_headers)

    page = client.get("/api/catalog/stocks", params={"search": "tata", "limit": 1}).json()["data"]

    assert page["total"] == 2
    assert page["limit"] == 1
    assert page["offset"] == 0
    assert [item["symbol"] for item in page["items"]] == ["TCS"]

    second = client.get("/api/catalog/stocks", params={"search": "tata", "limit": 1, "offset": 1}).json()["data"]
    assert [item["symbol"] for item in second["items"]] == ["TATAMOTORS"]


def test_search_treats_wildcards_literally(client, admin_headers):
    for symbol, name in [("NIFTY_BEES", "Nippon Nifty ETF"), ("NIFTYXBEES", "Other ETF")]:
        client.post("/api/catalog/stocks", json={"symbol": symbol, "company_name": name}, headers=admin_headers)

    assert client.get("/api/catalog/stocks", params={"search": "%"}).json()["data"]["total"] == 0

    page = client.get("/api/catalog/stocks", params={"search": "Y_B"}).json()["data"]
    assert [item["symbol"] for item in page["items"]] == ["NIFTY_BEES"]


def test_list_filters_by_sector(client, admin_headers, it_sector):
    client.post("/api/catalog/stocks", json={**STOCK, "sector_id": it_sector}, headers=admin_headers)
    client.post("/api/catalog/stocks", json={"symbol": "ONGC", "company_name": "ONGC"}, headers=admin_headers)

    page = client.get("/api/catalog/stocks", params={"sector_id": it_sector}).json()["data"]
    assert [item["symbol"] for item in page["items"]] == ["TCS"]


def test_list_rejects_out_of_range_limit(client):
    assert client.get("/api/catalog/stocks", params={"limit": 500}).status_code == 422


def test_get_by_symbol(client, admin_headers):
    client.post("/api/catalog/stocks", json=STOCK, headers=admin_headers)

    assert client.get("/api/catalog/stocks/tcs").json()["data"]["company_name"] == "Tata Consultancy Services"
    assert client.get("/api/catalog/stocks/NOPE").status_code == 404


def test_update_and_delete(client, admin_headers):
    stock_id = client.post("/api/catalog/stocks", json=STOCK, headers=admin_headers).json()["data"]["id"]

    updated = client.put(f"/api/catalog/stocks/{stock_id}", json={"current_price": 3600}, headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["current_price"] == 3600.0
    assert updated.json()["data"]["company_name"] == "Tata Consultancy Services"

    assert client.delete(f"/api/catalog/stocks/{stock_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/catalog/stocks/{stock_id}", headers=admin_headers).status_code == 404
    assert client.put(f"/api/catalog/stocks/{stock_id}", json={"current_price": 1}, headers=admin_headers).status_code == 404
