"""Test Stripe webhook verification, order creation and idempotency."""
import hashlib
import hmac
import json
import time
import uuid

import pytest
from sqlalchemy import select

from domains.coupons.service import create_coupon, get_coupon
from domains.orders.models.db_models import Order
from domains.storefront import webhooks
from domains.storefront.webhooks import checkout_order_fields

WEBHOOK_SECRET = "whsec_test_secret"
WEBHOOK_URL = "/api/external/webhooks/stripe"


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def completed_event(session_id: str, **overrides) -> dict:
    checkout = {
        "id": session_id,
        "object": "checkout.session",
        "amount_subtotal": 15000,
        "amount_total": 12750,
        "currency": "eur",
        "customer_email": None,
        "customer_details": {
            "email": "layla@example.com",
            "name": "Layla Benali Haddad",
            "phone": "+33600000000",
            "address": {"line1": "3 Rue de Rivoli", "city": "Paris", "postal_code": "75001", "country": "FR"},
        },
        "metadata": {"couponCode": "SAVE15", "discountPercent": "15"},
        **overrides,
    }
    return {
        "id": f"evt_{uuid.uuid4().hex}",
        "type": "checkout.session.completed",
        "data": {"object": checkout},
    }


@pytest.fixture(autouse=True)
def stripe_env(monkeypatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_secret")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    webhooks.processed_events.clear()
    yield
    webhooks.processed_events.clear()


async def post_event(client, event: dict, signature: str | None = None):
    payload = json.dumps(event)
    return await client.post(
        WEBHOOK_URL,
        content=payload,
        headers={
            "Content-Type": "application/json",
            "Stripe-Signature": signature if signature is not None else sign(payload),
        },
    )


def test_checkout_order_fields():
    fields = checkout_order_fields(completed_event("cs_1")["data"]["object"], "USD")
    assert fields["email"] == "layla@example.com"
    assert str(fields["subtotal"]) == "150.00"
    assert str(fields["total"]) == "127.50"
    assert str(fields["discount_amount"]) == "22.50"
    assert fields["currency"] == "EUR"
    assert fields["shipping_first_name"] == "Layla"
    assert fields["shipping_last_name"] == "Benali Haddad"
    assert fields["notes"] == "Stripe Session: cs_1"


def test_checkout_order_fields_fallbacks():
    fields = checkout_order_fields({"id": "cs_2", "amount_total": 500}, "MAD")
    assert fields["email"] == "unknown@email.com"
    assert fields["shipping_first_name"] == "Customer"
    assert fields["currency"] == "MAD"
    assert fields["coupon_code"] is None


@pytest.mark.asyncio
async def test_completed_checkout_creates_paid_order(client, session, store_settings):
    coupon = await create_coupon(session, {"code": "SAVE15", "type": "PERCENTAGE", "value": 15})
    await session.commit()

    resp = await post_event(client, completed_event("cs_test_paid"))
    assert resp.status_code == 200
    assert resp.json() == {"received": True}

    order = (await session.execute(
        select(Order).where(Order.stripe_session_id == "cs_test_paid")
    )).scalar_one()
    assert order.status == "CONFIRMED"
    assert order.payment_status == "PAID"
    assert order.payment_method == "CARD"
    assert order.paid_at is not None
    assert float(order.total) == 127.5
    assert float(order.discount_amount) == 22.5
    assert order.coupon_code == "SAVE15"
    assert order.items == []

    coupon = await get_coupon(session, str(coupon.id))
    assert coupon.usage_count == 1


@pytest.mark.asyncio
async def test_duplicate_event_is_acknowledged(client, session):
    event = completed_event("cs_test_dup", metadata={})

    first = await post_event(client, event)
    second = await post_event(client, event)

    assert first.json() == {"received": True}
    assert second.json() == {"received": True, "duplicate": True}
    orders = (await session.execute(select(Order))).scalars().all()
    assert len(orders) == 1


@pytest.mark.asyncio
async def test_redelivered_session_under_new_event_id(client, session):
    await post_event(client, completed_event("cs_test_same", metadata={}))
    resp = await post_event(client, completed_event("cs_test_same", metadata={}))

    assert resp.json() == {"received": True}
    orders = (await session.execute(select(Order))).scalars().all()
    assert len(orders) == 1


@pytest.mark.asyncio
async def test_invalid_signature(client):
    event = completed_event("cs_test_forged")
    resp = await post_event(client, event, signature=sign(json.dumps(event), secret="whsec_wrong"))
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid signature"}


@pytest.mark.asyncio
async def test_missing_signature(client):
    resp = await post_event(client, completed_event("cs_test_unsigned"), signature="")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing stripe-signature header"}


@pytest.mark.asyncio
async def test_webhook_not_configured(client, monkeypatch):
    monkeypatch.delenv("STRIPE_WEBHOOK_SECRET")
    resp = await post_event(client, completed_event("cs_test_nocfg"))
    assert resp.status_code == 500
    assert resp.json() == {"error": "Webhook not configured"}


@pytest.mark.asyncio
async def test_other_events_are_acknowledged(client, session):
    for event_type in ("checkout.session.expired", "payment_intent.payment_failed", "customer.created"):
        event = {"id": f"evt_{uuid.uuid4().hex}", "type": event_type, "data": {"object": {"id": "obj_1"}}}
        resp = await post_event(client, event)
        assert resp.json() == {"received": True}

    assert (await session.execute(select(Order))).scalars().all() == []


@pytest.mark.asyncio
async def test_stale_signature_is_rejected(client, session):
    event = completed_event("cs_test_replayed", metadata={})
    week_ago = int(time.time()) - 7 * 24 * 3600
    resp = await post_event(client, event, signature=sign(json.dumps(event), timestamp=week_ago))

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid signature"}
    assert (await session.execute(select(Order))).scalars().all() == []
    assert webhooks.processed_events.seen(event["id"]) is None


@pytest.mark.asyncio
async def test_event_released_when_commit_fails(session, monkeypatch):
    event = completed_event("cs_test_commit", metadata={})
    payload = json.dumps(event).encode("utf-8")
    real_commit = session.commit
    attempts = []

    async def flaky_commit():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("connection lost")
        await real_commit()

    monkeypatch.setattr(session, "commit", flaky_commit)

    with pytest.raises(RuntimeError):
        await webhooks.process_webhook(session, payload, sign(payload.decode("utf-8")))
    assert webhooks.processed_events.seen(event["id"]) is None
    await session.rollback()

    result = await webhooks.process_webhook(session, payload, sign(payload.decode("utf-8")))
    assert result == {"received": True}
    assert webhooks.processed_events.seen(event["id"]).status == "processed"
    orders = (await session.execute(select(Order))).scalars().all()
    assert [order.stripe_session_id for order in orders] == ["cs_test_commit"]
