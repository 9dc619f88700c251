"""Test the API-key protected storefront endpoints under /api/external."""
from datetime import timedelta
from types import SimpleNamespace

import pytest
import stripe

from core.models.base import utcnow
from domains.coupons.service import create_coupon
from domains.inventory.service import adjust_stock, create_warehouse
from domains.merchandising.service import create_bundle
from domains.pricing.service import resolve_region, seed_default_regions, set_product_prices
from domains.settings.service import create_api_key, update_api_key


# ---------------------------------------------------------------------------
# Authentication & CORS
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_missing_key_is_rejected_with_cors(client):
    resp = await client.get("/api/external/products", headers={"Origin": "https://shop.example.com"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Missing Authorization header"}
    assert resp.headers["access-control-allow-origin"] == "https://shop.example.com"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "authorization,message",
    [
        ("Token abc", "Invalid Authorization format. Use: Bearer <api_key>"),
        ("Bearer nxts_unknown", "Invalid API key"),
    ],
)
async def test_bad_credentials(client, authorization, message):
    resp = await client.get("/api/external/products", headers={"Authorization": authorization})
    assert resp.status_code == 401
    assert resp.json()["error"] == message


@pytest.mark.asyncio
async def test_deactivated_and_expired_keys(client, session):
    inactive, inactive_raw = await create_api_key(session, "Old shop", ["read"])
    await update_api_key(session, str(inactive.id), {"is_active": False})
    _, expired_raw = await create_api_key(session, "Promo", ["read"], expires_at=utcnow() - timedelta(hours=1))
    await session.commit()

    resp = await client.get("/api/external/products", headers={"Authorization": f"Bearer {inactive_raw}"})
    assert resp.json()["error"] == "API key is deactivated"
    resp = await client.get("/api/external/products", headers={"Authorization": f"Bearer {expired_raw}"})
    assert resp.json()["error"] == "API key has expired"


@pytest.mark.asyncio
async def test_missing_permission(client, make_api_key):
    headers = await make_api_key("read")
    resp = await client.post("/api/external/checkout", json={"items": []}, headers=headers)
    assert resp.status_code == 403
    assert resp.json() == {"error": "Missing required permission: checkout"}


@pytest.mark.asyncio
async def test_admin_key_grants_everything(client, make_api_key):
    headers = await make_api_key("admin")
    resp = await client.get("/api/external/config", headers=headers)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_preflight(client):
    resp = await client.options(
        "/api/external/checkout",
        headers={"Origin": "https://shop.example.com", "Access-Control-Request-Method": "POST"},
    )
    assert resp.status_code == 200
    assert resp.json() == {}
    assert resp.headers["access-control-allow-origin"] == "https://shop.example.com"
    assert "Authorization" in resp.headers["access-control-allow-headers"]


# ---------------------------------------------------------------------------
# Products & config
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_products_are_priced_for_country(client, session, make_product, make_api_key):
    kaftan = await make_product(name="Kaftan", price=120, compare_at_price=150, featured=True)
    await make_product(name="Hidden draft", status="DRAFT")
    await seed_default_regions(session)
    eu = await resolve_region(session, "FR")
    await set_product_prices(session, str(kaftan.id), [{"region_id": str(eu.id), "price": 110}])
    second = await create_warehouse(session, {"name": "Marrakech", "code": "RAK"})
    await adjust_stock(session, kaftan.id, 4, "IN")
    await adjust_stock(session, kaftan.id, 6, "IN", warehouse_id=str(second.id))
    await session.commit()
    headers = await make_api_key("read")

    resp = await client.get("/api/external/products", params={"country": "fr"}, headers=headers)
    data = resp.json()
    assert data["count"] == 1
    assert data["region"] == {"code": "EU", "name": "Europe", "currency": "EUR"}
    product = data["products"][0]
    assert product["name"] == "Kaftan"
    assert product["price"] == 110.0
    assert product["compareAtPrice"] is None
    assert product["currency"] == "EUR"
    assert product["stock"] == 10
    assert "costPrice" not in product

    resp = await client.get("/api/external/products", params={"country": "US"}, headers=headers)
    product = resp.json()["products"][0]
    assert product["price"] == 120.0
    assert product["compareAtPrice"] == 150.0
    assert product["currency"] == "USD"


@pytest.mark.asyncio
async def test_store_config_hides_secrets(client, make_api_key, monkeypatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_secret")
    monkeypatch.setenv("STRIPE_PUBLISHABLE_KEY", "pk_test_public")
    headers = await make_api_key("read")

    resp = await client.get("/api/external/config", headers=headers)
    data = resp.json()
    assert data["success"] is True
    assert data["config"]["stripe"] == {"enabled": True, "publishableKey": "pk_test_public"}
    assert data["config"]["currency"] == "USD"
    assert data["config"]["currencySymbol"] == "$"
    assert data["config"]["locale"] == "en-US"
    assert "sk_test_secret" not in resp.text


# ---------------------------------------------------------------------------
# Coupons & bundles
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_coupon_queries(client, session, make_api_key):
    await create_coupon(session, {"code": "SPRING10", "type": "PERCENTAGE", "value": 10})
    await create_coupon(session, {"code": "SPRING25", "type": "PERCENTAGE", "value": 25})
    await create_coupon(session, {"code": "SHIP", "type": "FREE_SHIPPING", "value": 0})
    await session.commit()
    headers = await make_api_key("read")

    resp = await client.get("/api/external/coupons", headers=headers)
    assert resp.json()["coupon"]["code"] == "SPRING25"

    resp = await client.get("/api/external/coupons", params={"all": "true"}, headers=headers)
    assert resp.json()["count"] == 3

    resp = await client.get("/api/external/coupons", params={"code": "spring10"}, headers=headers)
    assert resp.json()["coupon"]["discount"] == 10.0

    resp = await client.get("/api/external/coupons", params={"code": "NOPE"}, headers=headers)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Coupon not found or expired"}


@pytest.mark.asyncio
async def test_best_coupon_is_null_without_percentage_coupons(client, make_api_key):
    headers = await make_api_key("read")
    resp = await client.get("/api/external/coupons", headers=headers)
    assert resp.json() == {"success": True, "coupon": None}


@pytest.mark.asyncio
async def test_bundles_need_write_permission(client, session, make_product, make_api_key):
    gift_set = await make_product(name="Gift Set")
    soap = await make_product(name="Soap", price=6)
    body = {"productId": str(gift_set.id), "items": [{"productId": str(soap.id), "quantity": 2}]}

    reader = await make_api_key("read")
    resp = await client.post("/api/external/bundles", json=body, headers=reader)
    assert resp.status_code == 403

    writer = await make_api_key("read", "write", name="Sync job")
    resp = await client.post("/api/external/bundles", json=body, headers=writer)
    assert resp.status_code == 201
    bundle = resp.json()["bundle"]
    assert bundle["product"]["isActive"] is True
    assert bundle["items"][0]["product"]["name"] == "Soap"
    assert "costPrice" not in bundle["items"][0]["product"]

    resp = await client.get("/api/external/bundles", params={"productId": str(gift_set.id)}, headers=reader)
    assert resp.json()["count"] == 1

    resp = await client.put("/api/external/bundles", json={"savingsAmount": 3}, headers=writer)
    assert resp.status_code == 400
    assert resp.json() == {"error": "id is required"}

    resp = await client.delete("/api/external/bundles", params={"id": bundle["id"]}, headers=writer)
    assert resp.json() == {"success": True, "message": "Bundle deleted successfully"}


@pytest.mark.asyncio
async def test_external_bundle_listing_ignores_malformed_ids(client, session, make_product, make_api_key):
    gift_set = await make_product(name="Gift Set")
    soap = await make_product(name="Soap")
    await create_bundle(session, {"product_id": str(gift_set.id), "items": [{"product_id": str(soap.id)}]})
    await session.commit()
    headers = await make_api_key("read")

    resp = await client.get("/api/external/bundles", params={"id": "not-a-uuid"}, headers=headers)
    assert resp.json()["bundles"] == []


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------

CART = {
    "items": [
        {"name": "Kaftan", "price": 12000, "quantity": 1},
        {"name": "Scarf", "price": 2999, "quantity": 2, "image": "https://cdn.example.com/scarf.jpg"},
    ],
    "successUrl": "https://shop.example.com/success",
    "cancelUrl": "https://shop.example.com/cart",
    "customerEmail": "buyer@example.com",
}


@pytest.fixture
def stripe_checkout(monkeypatch):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id="cs_test_123", url="https://checkout.stripe.com/c/cs_test_123")

    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_secret")
    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    return calls


@pytest.mark.asyncio
async def test_checkout_requires_store_settings(client, make_api_key, stripe_checkout):
    headers = await make_api_key("checkout")
    resp = await client.post("/api/external/checkout", json=CART, headers=headers)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Store not configured"}


@pytest.mark.asyncio
async def test_checkout_requires_stripe(client, store_settings, make_api_key):
    headers = await make_api_key("checkout")
    resp = await client.post("/api/external/checkout", json=CART, headers=headers)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Stripe is not configured"}


@pytest.mark.asyncio
async def test_checkout_validation(client, store_settings, make_api_key, stripe_checkout):
    headers = await make_api_key("checkout")
    resp = await client.post("/api/external/checkout", json={**CART, "items": []}, headers=headers)
    assert resp.json() == {"error": "No items provided"}
    resp = await client.post("/api/external/checkout", json={**CART, "cancelUrl": None}, headers=headers)
    assert resp.json() == {"error": "Missing successUrl or cancelUrl"}
    assert stripe_checkout == []


@pytest.mark.asyncio
async def test_checkout_without_coupon(client, store_settings, make_api_key, stripe_checkout):
    headers = await make_api_key("checkout", name="Main storefront")
    resp = await client.post("/api/external/checkout", json=CART, headers=headers)

    assert resp.json() == {
        "success": True,
        "sessionId": "cs_test_123",
        "url": "https://checkout.stripe.com/c/cs_test_123",
    }
    params = stripe_checkout[0]
    assert params["api_key"] == "sk_test_secret"
    assert params["mode"] == "payment"
    assert params["customer_email"] == "buyer@example.com"
    assert [line["price_data"]["unit_amount"] for line in params["line_items"]] == [12000, 2999]
    assert params["line_items"][1]["price_data"]["product_data"]["images"] == ["https://cdn.example.com/scarf.jpg"]
    assert params["metadata"] == {"couponCode": "", "discountPercent": "0", "apiKeyName": "Main storefront"}


@pytest.mark.asyncio
async def test_checkout_applies_percentage_coupon(client, session, store_settings, make_api_key, stripe_checkout):
    await create_coupon(session, {"code": "SAVE15", "type": "PERCENTAGE", "value": 15})
    await create_coupon(session, {"code": "FLAT5", "type": "FIXED_AMOUNT", "value": 5})
    await session.commit()
    headers = await make_api_key("checkout")

    await client.post("/api/external/checkout", json={**CART, "couponCode": "save15"}, headers=headers)
    params = stripe_checkout[0]
    assert [line["price_data"]["unit_amount"] for line in params["line_items"]] == [10200, 2549]
    assert params["line_items"][0]["price_data"]["currency"] == store_settings.currency.lower()
    assert params["metadata"]["couponCode"] == "save15"
    assert params["metadata"]["discountPercent"] == "15"

    await client.post("/api/external/checkout", json={**CART, "couponCode": "FLAT5"}, headers=headers)
    params = stripe_checkout[1]
    assert [line["price_data"]["unit_amount"] for line in params["line_items"]] == [12000, 2999]
    assert params["metadata"]["discountPercent"] == "0"


@pytest.mark.asyncio
async def test_checkout_stripe_error(client, store_settings, make_api_key, monkeypatch):
    def failing_create(**kwargs):
        raise stripe.InvalidRequestError("Amount must be at least 50 cents", param="amount")

    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_secret")
    monkeypatch.setattr(stripe.checkout.Session, "create", failing_create)
    headers = await make_api_key("checkout")

    resp = await client.post("/api/external/checkout", json=CART, headers=headers)
    assert resp.status_code == 400
    assert "50 cents" in resp.json()["error"]
