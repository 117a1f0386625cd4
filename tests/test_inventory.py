"""
Inventory CRUD, stock adjustments and image ingestion
"""

import httpx
import pytest

from retail_api.core.errors import ApiError
from retail_api.models import ItemStatus
from retail_api.services.images import ImageFetcher


# Fixtures
@pytest.fixture
def shop(make_tenant):
    return make_tenant("Stock Shop")


@pytest.fixture
def headers(make_user, shop, auth_headers):
    return auth_headers(make_user(tenant=shop))


@pytest.fixture
def catalog(make_item, shop):
    return [
        make_item(shop, sku="APL-1", name="Apple", price_cents=100, stock=50, reorder_level=10),
        make_item(shop, sku="BAN-1", name="Banana", price_cents=50, stock=3, reorder_level=5),
        make_item(shop, sku="CHR-1", name="Cherry Jam", price_cents=600, stock=0, item_status=ItemStatus.DRAFT),
    ]


def image_transport(handler):
    return ImageFetcher(transport=httpx.MockTransport(handler))


def test_create_item(client, shop, headers):
    response = client.post(
        "/api/inventory",
        json={"tenant_id": str(shop.id), "sku": "TEA-1", "name": "Green Tea", "price_cents": 450, "stock": 12},
        headers=headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["sku"] == "TEA-1"
    assert body["currency"] == "usd"
    assert body["itemStatus"] == "active"
    assert body["isLowStock"] is False


def test_duplicate_sku_is_rejected(client, shop, headers, catalog):
    response = client.post(
        "/api/inventory",
        json={"tenant_id": str(shop.id), "sku": "APL-1", "name": "Another Apple"},
        headers=headers,
    )

    assert response.status_code == 409
    assert response.json()["error"] == "duplicate_sku"


def test_same_sku_allowed_in_other_tenant(client, make_tenant, make_user, auth_headers, catalog):
    other = make_tenant("Other Shop")
    response = client.post(
        "/api/inventory",
        json={"tenant_id": str(other.id), "sku": "APL-1", "name": "Apple"},
        headers=auth_headers(make_user(tenant=other)),
    )

    assert response.status_code == 201


def test_negative_price_is_invalid(client, shop, headers):
    response = client.post(
        "/api/inventory",
        json={"tenant_id": str(shop.id), "sku": "BAD", "name": "Bad", "price_cents": -1},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


def test_list_filters_and_search(client, shop, headers, catalog):
    everything = client.get(f"/api/inventory?tenant_id={shop.id}", headers=headers).json()
    assert [i["sku"] for i in everything["items"]] == ["APL-1", "BAN-1", "CHR-1"]
    assert everything["pagination"]["totalItems"] == 3

    drafts = client.get(f"/api/inventory?tenant_id={shop.id}&item_status=draft", headers=headers).json()
    assert [i["sku"] for i in drafts["items"]] == ["CHR-1"]

    found = client.get(f"/api/inventory?tenant_id={shop.id}&search=jam", headers=headers).json()
    assert [i["sku"] for i in found["items"]] == ["CHR-1"]


def test_inventory_stats(client, shop, headers, catalog):
    body = client.get(f"/api/inventory/stats?tenant_id={shop.id}", headers=headers).json()

    assert body["totalItems"] == 3
    assert body["byStatus"]["active"] == 2
    assert body["byStatus"]["draft"] == 1
    assert body["totalStock"] == 53
    assert body["totalValueCents"] == 50 * 100 + 3 * 50
    assert body["lowStockCount"] == 2


def test_low_stock_alerts(client, shop, headers, catalog):
    body = client.get(f"/api/inventory/alerts/low-stock?tenant_id={shop.id}", headers=headers).json()

    assert [i["sku"] for i in body["items"]] == ["CHR-1", "BAN-1"]
    assert body["total"] == 2


def test_get_by_sku(client, shop, headers, catalog):
    assert client.get(f"/api/inventory/sku/{shop.id}/BAN-1", headers=headers).json()["name"] == "Banana"
    assert client.get(f"/api/inventory/sku/{shop.id}/NOPE", headers=headers).status_code == 404


def test_update_and_delete(client, headers, catalog):
    item_id = catalog[0].id

    updated = client.put(f"/api/inventory/{item_id}", json={"price_cents": 120}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["priceCents"] == 120
    assert updated.json()["updatedAt"] is not None

    assert client.delete(f"/api/inventory/{item_id}", headers=headers).status_code == 204
    assert client.get(f"/api/inventory/{item_id}", headers=headers).status_code == 404


@pytest.mark.parametrize(
    "operation,quantity,expected",
    [("set", 7, 7), ("add", 5, 8), ("subtract", 2, 1), ("subtract", 10, 0)],
)
def test_stock_adjustments(client, headers, catalog, operation, quantity, expected):
    banana = catalog[1]

    response = client.post(
        f"/api/inventory/{banana.id}/stock",
        json={"operation": operation, "quantity": quantity},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["stock"] == expected


def test_other_tenant_cannot_read_item(client, make_user, auth_headers, catalog):
    response = client.get(f"/api/inventory/{catalog[0].id}", headers=auth_headers(make_user()))

    assert response.status_code == 403
    assert response.json()["error"] == "tenant_access_denied"


def test_image_url_is_verified_and_stored(app, client, headers, catalog):
    app.state.image_fetcher = image_transport(
        lambda request: httpx.Response(200, headers={"content-type": "image/png"}, content=b"\x89PNG")
    )

    response = client.post(
        f"/api/inventory/{catalog[0].id}/image",
        json={"url": "https://cdn.example.com/apple.png"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["imageUrl"] == "https://cdn.example.com/apple.png"


def test_non_image_content_is_rejected(app, client, headers, catalog):
    app.state.image_fetcher = image_transport(
        lambda request: httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"}, content=b"<html>")
    )

    response = client.post(
        f"/api/inventory/{catalog[0].id}/image",
        json={"url": "https://example.com/page"},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_image"


def test_upstream_error_is_bad_gateway(app, client, headers, catalog):
    app.state.image_fetcher = image_transport(lambda request: httpx.Response(404))

    response = client.post(
        f"/api/inventory/{catalog[0].id}/image",
        json={"url": "https://cdn.example.com/missing.png"},
        headers=headers,
    )

    assert response.status_code == 502
    assert response.json()["error"] == "image_fetch_failed"


def test_non_http_scheme_is_rejected():
    fetcher = ImageFetcher()

    with pytest.raises(ApiError) as excinfo:
        fetcher.fetch("ftp://example.com/a.png")

    assert excinfo.value.status_code == 400
    assert excinfo.value.code == "invalid_image"
