"""Test dashboard orders, cash-on-delivery checkout and dashboard stats."""
import pytest

from core.errors import ValidationFailed
from domains.coupons.service import create_coupon, get_coupon
from domains.inventory.service import adjust_stock
from domains.orders.service import (
    cancel_order,
    create_order,
    dashboard_stats,
    get_order_by_number,
    update_order,
)


@pytest.mark.asyncio
async def test_create_order_computes_totals(session, make_product):
    product = await make_product(price=40)

    order = await create_order(session, {
        "email": "amina@example.com",
        "items": [
            {"product_id": str(product.id), "quantity": 2},
            {"name": "Gift wrap", "price": 5, "quantity": 1},
        ],
        "shipping_amount": 7,
        "tax_amount": 3,
    })

    assert order.order_number.startswith("ORD-")
    assert order.status == "PENDING"
    assert order.payment_status == "PENDING"
    assert order.payment_method == "CASH"
    assert float(order.subtotal) == 85.0
    assert float(order.total) == 95.0
    catalog_item = next(item for item in order.items if item.product_id == product.id)
    assert catalog_item.name == product.name
    assert catalog_item.sku == product.sku


@pytest.mark.asyncio
async def test_create_order_with_coupon(session, make_product):
    product = await make_product(price=100)
    await create_coupon(session, {"code": "TEN", "type": "PERCENTAGE", "value": 10})

    order = await create_order(session, {
        "email": "omar@example.com",
        "items": [{"product_id": str(product.id), "quantity": 1}],
        "coupon_code": "ten",
    })

    assert order.coupon_code == "TEN"
    assert float(order.discount_amount) == 10.0
    assert float(order.total) == 90.0


@pytest.mark.asyncio
async def test_create_order_validation(session):
    with pytest.raises(ValidationFailed, match="At least one item"):
        await create_order(session, {"email": "x@example.com", "items": []})
    with pytest.raises(ValidationFailed, match="needs a name and a price"):
        await create_order(session, {"email": "x@example.com", "items": [{"quantity": 1}]})


@pytest.mark.asyncio
async def test_status_transitions_and_stamps(session, make_product):
    product = await make_product()
    order = await create_order(session, {
        "email": "x@example.com", "items": [{"product_id": str(product.id), "quantity": 1}],
    })

    order = await update_order(session, str(order.id), {
        "status": "PROCESSING", "payment_status": "PAID", "tracking_number": "TRK-1",
    })
    assert order.status == "PROCESSING"
    paid_at = order.paid_at
    assert paid_at is not None
    assert order.tracking_number == "TRK-1"

    order = await update_order(session, str(order.id), {"status": "SHIPPED", "fulfillment_status": "SHIPPED"})
    assert order.shipped_at is not None
    order = await update_order(session, str(order.id), {"payment_status": "PAID"})
    assert order.paid_at == paid_at

    with pytest.raises(ValidationFailed, match="Cannot transition"):
        await update_order(session, str(order.id), {"status": "PENDING"})
    with pytest.raises(ValidationFailed, match="Invalid order status"):
        await update_order(session, str(order.id), {"status": "LOST"})
    with pytest.raises(ValidationFailed, match="Only pending or processing"):
        await cancel_order(session, str(order.id))


@pytest.mark.asyncio
async def test_cancel_pending_order(session, make_product):
    product = await make_product()
    order = await create_order(session, {
        "email": "x@example.com", "items": [{"product_id": str(product.id), "quantity": 1}],
    })
    order = await cancel_order(session, str(order.id))
    assert order.status == "CANCELLED"
    assert order.cancelled_at is not None


@pytest.mark.asyncio
async def test_dashboard_stats(session, make_product):
    product = await make_product(price=20)
    await make_product(name="Draft item", status="DRAFT")
    await adjust_stock(session, product.id, 3, "IN")

    shipped = await create_order(session, {
        "email": "a@example.com", "items": [{"product_id": str(product.id), "quantity": 2}],
    })
    await update_order(session, str(shipped.id), {"status": "CONFIRMED"})
    await update_order(session, str(shipped.id), {"status": "SHIPPED"})
    await create_order(session, {
        "email": "b@example.com", "items": [{"product_id": str(product.id), "quantity": 1}],
    })

    data = await dashboard_stats(session)
    stats = data["stats"]
    assert stats["orders"]["total"] == 2
    assert stats["orders"]["pending"] == 1
    assert stats["orders"]["today"] == 2
    assert stats["revenue"]["total"] == 40.0
    assert stats["products"] == {"total": 2, "active": 1, "lowStock": 1}
    assert len(data["recentOrders"]) == 2
    assert data["recentOrders"][0]["itemCount"] == 1


@pytest.mark.asyncio
async def test_cod_checkout(client, store_settings, make_product):
    product = await make_product(price=150)

    resp = await client.post("/api/orders", json={
        "items": [{"productId": str(product.id), "quantity": 2}],
        "customer": {"firstName": "Sara", "lastName": "Idrissi", "phone": "+212600000000"},
        "shipping": {"address": "12 Rue Atlas", "city": "Rabat", "country": "ma"},
        "shippingCost": 30,
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True

    resp = await client.get("/api/orders", params={"orderNumber": data["orderNumber"]})
    order = resp.json()["order"]
    assert order["email"] == "+212600000000@guest.invalid"
    assert order["paymentMethod"] == "CASH"
    assert order["total"] == 330.0
    assert order["currency"] == store_settings.currency
    assert order["shippingAddress"]["country"] == "MA"


@pytest.mark.asyncio
async def test_cod_checkout_rejects_incomplete_customer(client, make_product):
    product = await make_product()
    resp = await client.post("/api/orders", json={
        "items": [{"productId": str(product.id), "quantity": 1}],
        "customer": {"firstName": "Sara"},
        "shipping": {"address": "12 Rue Atlas", "city": "Rabat"},
    })
    assert resp.status_code == 400
    assert resp.json() == {"error": "Customer details are incomplete"}


@pytest.mark.asyncio
async def test_admin_order_endpoints(client, admin_headers, make_product):
    product = await make_product()
    resp = await client.post(
        "/api/dashboard/orders",
        json={"email": "c@example.com", "items": [{"productId": str(product.id), "quantity": 1}]},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    order_id = resp.json()["order"]["id"]

    resp = await client.delete(f"/api/dashboard/orders/{order_id}", headers=admin_headers)
    assert resp.json()["order"]["status"] == "CANCELLED"

    resp = await client.get("/api/dashboard/orders", params={"status": "CANCELLED"}, headers=admin_headers)
    assert resp.json()["pagination"]["total"] == 1

    resp = await client.get("/api/dashboard/stats", headers=admin_headers)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_coupon_usage_recorded_on_order(session, make_product):
    product = await make_product(price=50)
    coupon = await create_coupon(session, {"code": "ONCE", "type": "FIXED_AMOUNT", "value": 5, "usage_limit": 1})
    order = await create_order(session, {
        "email": "d@example.com", "items": [{"product_id": str(product.id), "quantity": 1}], "coupon_code": "ONCE",
    })
    assert (await get_order_by_number(session, order.order_number)).id == order.id
    coupon = await get_coupon(session, str(coupon.id))
    assert coupon.usage_count == 1
