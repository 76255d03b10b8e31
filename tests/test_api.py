"""HTTP-level tests through the FastAPI test client."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from storefront.api import create_app

GUEST = {"X-Guest-Id": "guest-session-0001"}

SHIPPING = {
    "email": "ana@example.com",
    "first_name": "Ana",
    "last_name": "Lopez",
    "address": "12 Harbor Road",
    "city": "Portland",
    "postal_code": "97201",
    "country": "US",
}


@pytest.fixture
def client(container):
    with TestClient(create_app(container)) as test_client:
        yield test_client


def _bearer(token: str) -> dict[str, str]:
    return {**GUEST, "Authorization": f"Bearer {token}"}


def _sign_up(client) -> str:
    response = client.post(
        "/api/v1/auth/sign-up",
        json={"email": "ana@example.com", "password": "secret123", "confirm_password": "secret123", "name": "Ana Lopez"},
        headers=GUEST,
    )
    assert response.status_code == 200
    return response.json()["token"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_guest_cart_round_trip(client):
    added = client.post("/api/v1/cart/items", json={"product_id": "prod-b", "quantity": 2}, headers=GUEST)
    assert added.status_code == 200
    assert added.json()["count"] == 2
    assert added.headers["X-Guest-Id"] == GUEST["X-Guest-Id"]

    cart = client.get("/api/v1/cart", headers=GUEST).json()
    assert cart["item_count"] == 2
    assert cart["items"][0]["unit_price"] == 8000
    assert cart["subtotal"] == 16000
    assert cart["shipping"] == 0

    assert client.put("/api/v1/cart/items/prod-b", json={"quantity": 0}, headers=GUEST).json() == {"count": 0}


def test_new_visitor_gets_guest_id(client):
    response = client.get("/api/v1/cart/count", headers={"X-Guest-Id": "bad id!"})
    assert response.status_code == 200
    assert response.headers["X-Guest-Id"] != "bad id!"
    assert len(response.headers["X-Guest-Id"]) == 32


def test_invalid_quantity_is_400(client):
    response = client.post("/api/v1/cart/items", json={"product_id": "prod-a", "quantity": 0}, headers=GUEST)
    assert response.status_code == 400
    assert "quantity" in response.json()["detail"]["errors"]


def test_sign_up_adopts_guest_cart(client):
    client.post("/api/v1/cart/items", json={"product_id": "prod-a", "quantity": 3}, headers=GUEST)

    token = _sign_up(client)

    count = client.get("/api/v1/cart/count", headers={"Authorization": f"Bearer {token}"}).json()
    assert count["count"] == 3
    assert client.get("/api/v1/cart/count", headers=GUEST).json()["count"] == 0


def test_sign_in_errors(client):
    _sign_up(client)
    wrong = client.post("/api/v1/auth/sign-in", json={"email": "ana@example.com", "password": "nope123"})
    assert wrong.status_code == 401
    invalid = client.post("/api/v1/auth/sign-in", json={"email": "ana", "password": ""})
    assert invalid.status_code == 400


def test_me_reports_identity(client):
    assert client.get("/api/v1/auth/me", headers=GUEST).json()["user"] is None
    token = _sign_up(client)
    me = client.get("/api/v1/auth/me", headers=_bearer(token)).json()
    assert me["user"]["email"] == "ana@example.com"


def test_guest_checkout_redirects_to_sign_in(client):
    client.post("/api/v1/cart/items", json={"product_id": "prod-a", "quantity": 1}, headers=GUEST)

    response = client.post(
        "/api/v1/checkout", json={"shipping": SHIPPING, "payment_method": "credit-card"}, headers=GUEST
    )

    assert response.status_code == 401
    assert response.json()["kind"] == "authentication_required"
    assert response.json()["redirect_to"] == "/auth/login"


def test_checkout_and_order_history(client, store):
    token = _sign_up(client)
    headers = _bearer(token)
    client.post("/api/v1/cart/items", json={"product_id": "prod-a", "quantity": 2}, headers=headers)

    response = client.post(
        "/api/v1/checkout",
        json={"shipping": SHIPPING, "payment_method": "credit-card", "shipping_method": "express"},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["breakdown"] == {"subtotal": 10000, "discount": 0, "shipping": 2499, "tax": 800, "total": 13299}
    assert client.get("/api/v1/cart/count", headers=headers).json()["count"] == 0

    orders = client.get("/api/v1/orders", headers=headers).json()["orders"]
    assert [order["id"] for order in orders] == [body["order_id"]]
    assert orders[0]["order_items"][0]["price_at_purchase"] == 5000
    assert client.get("/api/v1/orders/missing", headers=headers).status_code == 404


def test_checkout_validation_is_400(client):
    token = _sign_up(client)
    headers = _bearer(token)
    client.post("/api/v1/cart/items", json={"product_id": "prod-a", "quantity": 1}, headers=headers)

    response = client.post(
        "/api/v1/checkout",
        json={"shipping": {**SHIPPING, "postal_code": ""}, "payment_method": "credit-card"},
        headers=headers,
    )

    assert response.status_code == 400
    assert "postal_code" in response.json()["errors"]


def test_coupon_statuses(client):
    assert client.post("/api/v1/cart/coupon", json={"code": "NOPE"}).status_code == 404
    assert client.post("/api/v1/cart/coupon", json={"code": " "}).status_code == 400


def test_coupon_applies_to_cart(client, store):
    store.rows("coupons").append(
        {"id": "c1", "code": "SAVE10", "discount_type": "percentage", "discount_value": "10", "active": True}
    )
    client.post("/api/v1/cart/items", json={"product_id": "prod-b", "quantity": 1}, headers=GUEST)
    applied = client.post("/api/v1/cart/coupon", json={"code": "save10"})
    cart = client.get("/api/v1/cart", params={"coupon": "save10"}, headers=GUEST).json()

    assert applied.status_code == 200
    assert applied.json()["coupon"]["code"] == "SAVE10"
    assert cart["discount"] == 800
    assert cart["coupon"]["code"] == "SAVE10"


@pytest.mark.parametrize(
    ("code", "status", "kind"),
    [("NOPE", 404, "not_found"), ("SAVE10", 503, "error")],
)
def test_checkout_refuses_unresolved_coupon(client, store, code, status, kind):
    store.rows("coupons").append(
        {"id": "c1", "code": "SAVE10", "discount_type": "percentage", "discount_value": "10", "active": True}
    )
    token = _sign_up(client)
    headers = _bearer(token)
    client.post("/api/v1/cart/items", json={"product_id": "prod-a", "quantity": 1}, headers=headers)
    if kind == "error":
        store.fail("query", "coupons")

    response = client.post(
        "/api/v1/checkout",
        json={"shipping": SHIPPING, "payment_method": "credit-card", "coupon_code": code},
        headers=headers,
    )

    assert response.status_code == status
    assert response.json()["detail"]["status"] == kind
    assert store.rows("orders") == []
    assert client.get("/api/v1/cart/count", headers=headers).json()["count"] == 1

def test_catalog_routes(client):
    products = client.get("/api/v1/products", params={"category": "accessories", "sort": "price-low"}).json()
    assert [p["id"] for p in products["products"]] == ["prod-c", "prod-b"]
    assert client.get("/api/v1/products", params={"sort": "random"}).status_code == 422
    assert client.get("/api/v1/products/missing").status_code == 404
    assert client.get("/api/v1/categories").json() == {"categories": ["accessories", "bags"]}
    assert client.get("/api/v1/search/suggestions", params={"q": "tote"}).json()["suggestions"][0]["id"] == "prod-a"


def test_account_and_admin_require_sign_in(client):
    response = client.get("/api/v1/orders")
    assert response.status_code == 401
    assert response.json()["redirect_to"] == "/auth/login"
    assert client.get("/api/v1/wishlist").status_code == 401
    assert client.get("/api/v1/admin/dashboard").status_code == 401


def test_wishlist_duplicate_is_409(client):
    headers = _bearer(_sign_up(client))
    assert client.post("/api/v1/wishlist", json={"product_id": "prod-a"}, headers=headers).status_code == 200
    assert client.post("/api/v1/wishlist", json={"product_id": "prod-a"}, headers=headers).status_code == 409


def test_admin_dashboard(client):
    headers = _bearer(_sign_up(client))
    response = client.get("/api/v1/admin/dashboard", headers=headers)
    assert response.status_code == 200
    assert response.json()["stats"]["products"] == 3
    assert len(response.json()["chart_data"]) == 6


def test_cart_socket_sends_initial_count(client):
    client.post("/api/v1/cart/items", json={"product_id": "prod-c", "quantity": 4}, headers=GUEST)

    with client.websocket_connect(f"/api/v1/cart/ws?guest_id={GUEST['X-Guest-Id']}") as socket:
        first = socket.receive_json()

    assert first["type"] == "cart_count"
    assert first["count"] == 4
    assert first["owner"] == f"guest:{GUEST['X-Guest-Id']}"
