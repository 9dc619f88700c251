"""Stripe webhook ingestion.

The signature is checked against STRIPE_WEBHOOK_SECRET before the body
is parsed, and signatures older than Stripe's default tolerance (300 s)
are rejected. Event ids are reserved in a process-wide idempotency store so
Stripe's redeliveries are acknowledged without running twice. An event is marked
processed only after its order is committed; orders are additionally
unique per checkout session id.
"""

import json
import logging
import os
from decimal import Decimal

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ServiceUnavailable, ValidationFailed
from core.resilience.idempotency import IdempotencyStore
from domains.orders.service import create_paid_order
from domains.settings.service import get_store_settings

logger = logging.getLogger(__name__)

processed_events = IdempotencyStore(ttl_seconds=86400)


def _from_minor_units(amount) -> Decimal:
    return (Decimal(amount or 0) / 100).quantize(Decimal("0.01"))


def checkout_order_fields(checkout: dict, fallback_currency: str) -> dict:
    """Order columns for a completed Checkout session object."""
    details = checkout.get("customer_details") or {}
    address = details.get("address") or {}
    name = (details.get("name") or "").split()
    metadata = checkout.get("metadata") or {}

    subtotal = _from_minor_units(checkout.get("amount_subtotal"))
    total = _from_minor_units(checkout.get("amount_total"))
    return {
        "stripe_session_id": checkout["id"],
        "email": checkout.get("customer_email") or details.get("email") or "unknown@email.com",
        "phone": details.get("phone"),
        "subtotal": subtotal,
        "discount_amount": max(subtotal - total, Decimal("0.00")),
        "total": total,
        "currency": (checkout.get("currency") or fallback_currency).upper(),
        "coupon_code": metadata.get("couponCode") or None,
        "notes": f"Stripe Session: {checkout['id']}",
        "shipping_first_name": name[0] if name else "Customer",
        "shipping_last_name": " ".join(name[1:]),
        "shipping_address1": address.get("line1"),
        "shipping_address2": address.get("line2"),
        "shipping_city": address.get("city"),
        "shipping_state": address.get("state"),
        "shipping_postal_code": address.get("postal_code"),
        "shipping_country": address.get("country"),
    }


def verify_event(payload: bytes, signature: str | None) -> dict:
    """Check the Stripe-Signature header and return the parsed event."""
    webhook_secret = os.getenv("STRIPE_WEBHOOK_SECRET")
    if not os.getenv("STRIPE_SECRET_KEY") or not webhook_secret:
        logger.error("Stripe not configured for webhooks")
        raise ServiceUnavailable("Webhook not configured")
    if not signature:
        raise ValidationFailed("Missing stripe-signature header")

    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"), signature, webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
        )
    except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
        logger.warning("Webhook signature verification failed: %s", exc)
        raise ValidationFailed("Invalid signature") from None

    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        raise ValidationFailed("Invalid payload") from None


async def handle_event(session: AsyncSession, event: dict) -> None:
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        logger.info("Payment successful for checkout session %s", obj.get("id"))
        settings = await get_store_settings(session)
        fallback_currency = settings.currency if settings else "USD"
        await create_paid_order(session, checkout_order_fields(obj, fallback_currency))
    elif event_type == "checkout.session.expired":
        logger.info("Checkout session expired: %s", obj.get("id"))
    elif event_type == "payment_intent.payment_failed":
        logger.info("Payment failed: %s", obj.get("id"))
    else:
        logger.info("Unhandled Stripe event type: %s", event_type)


async def process_webhook(session: AsyncSession, payload: bytes, signature: str | None) -> dict:
    event = verify_event(payload, signature)
    event_id = event.get("id")

    if event_id and not processed_events.reserve(event_id, event.get("type") or "unknown"):
        logger.info("Duplicate Stripe event %s acknowledged", event_id)
        return {"received": True, "duplicate": True}

    try:
        await handle_event(session, event)
        await session.commit()
    except Exception:
        if event_id:
            processed_events.release(event_id)
        raise
    if event_id:
        processed_events.complete(event_id)
    return {"received": True}
