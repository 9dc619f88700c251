"""Mirror catalog products onto Stripe.

Stripe products cannot be deleted, only archived, and prices are
immutable: a changed amount archives the old price and creates a new
one. Every function returns a SyncResult instead of raising, since a
Stripe outage must never fail a catalog write.
"""

import logging
import os
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import stripe
from starlette.concurrency import run_in_threadpool

from domains.catalog.models.db_models import Product, ProductStatus

logger = logging.getLogger(__name__)

STRIPE_MAX_IMAGES = 8


@dataclass
class SyncResult:
    success: bool
    stripe_product_id: str | None = None
    stripe_price_id: str | None = None
    error: str | None = None


def _secret_key() -> str | None:
    return os.getenv("STRIPE_SECRET_KEY") or None


def _currency() -> str:
    return (os.getenv("STRIPE_CURRENCY") or "eur").lower()


def to_minor_units(amount) -> int:
    """Currency units to Stripe's integer minor units (cents)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _product_fields(product: Product) -> dict:
    fields = {
        "name": product.name,
        "metadata": {"dashboard_id": str(product.id), "sku": product.sku},
        "images": [image.url for image in product.images if image.url][:STRIPE_MAX_IMAGES],
    }
    if product.description:
        fields["description"] = product.description
    return fields


async def _create_price(api_key: str, product: Product, stripe_product_id: str) -> str:
    price = await run_in_threadpool(
        stripe.Price.create,
        api_key=api_key,
        product=stripe_product_id,
        unit_amount=to_minor_units(product.price),
        currency=_currency(),
        metadata={"dashboard_id": str(product.id), "sku": product.sku},
    )
    return price.id


async def create_stripe_product(product: Product) -> SyncResult:
    api_key = _secret_key()
    if not api_key:
        return SyncResult(success=False, error="Stripe not configured")
    try:
        created = await run_in_threadpool(stripe.Product.create, api_key=api_key, **_product_fields(product))
        price_id = await _create_price(api_key, product, created.id)
    except stripe.StripeError as exc:
        logger.error("Stripe product create failed for %s: %s", product.sku, exc)
        return SyncResult(success=False, error=str(exc) or "Failed to create Stripe product")
    logger.info("Created Stripe product %s with price %s", created.id, price_id)
    return SyncResult(success=True, stripe_product_id=created.id, stripe_price_id=price_id)


async def update_stripe_product(product: Product) -> SyncResult:
    """Update name/description/images and roll the price if the amount changed."""
    api_key = _secret_key()
    if not api_key:
        return SyncResult(success=False, error="Stripe not configured")
    if not product.stripe_product_id:
        return await create_stripe_product(product)

    try:
        await run_in_threadpool(
            stripe.Product.modify,
            product.stripe_product_id,
            api_key=api_key,
            active=True,
            **_product_fields(product),
        )
        price_id = product.stripe_price_id
        if price_id:
            existing = await run_in_threadpool(stripe.Price.retrieve, price_id, api_key=api_key)
            if existing.unit_amount != to_minor_units(product.price):
                await run_in_threadpool(stripe.Price.modify, price_id, api_key=api_key, active=False)
                new_price_id = await _create_price(api_key, product, product.stripe_product_id)
                logger.info("Rolled Stripe price %s -> %s", price_id, new_price_id)
                price_id = new_price_id
        else:
            price_id = await _create_price(api_key, product, product.stripe_product_id)
    except stripe.StripeError as exc:
        logger.error("Stripe product update failed for %s: %s", product.sku, exc)
        return SyncResult(success=False, error=str(exc) or "Failed to update Stripe product")

    return SyncResult(success=True, stripe_product_id=product.stripe_product_id, stripe_price_id=price_id)


async def archive_stripe_product(stripe_product_id: str | None) -> SyncResult:
    api_key = _secret_key()
    if not api_key:
        return SyncResult(success=False, error="Stripe not configured")
    if not stripe_product_id:
        return SyncResult(success=True)
    try:
        await run_in_threadpool(stripe.Product.modify, stripe_product_id, api_key=api_key, active=False)
    except stripe.StripeError as exc:
        logger.error("Stripe archive failed for %s: %s", stripe_product_id, exc)
        return SyncResult(success=False, error=str(exc) or "Failed to archive Stripe product")
    logger.info("Archived Stripe product %s", stripe_product_id)
    return SyncResult(success=True, stripe_product_id=stripe_product_id)


async def sync_product(product: Product) -> SyncResult | None:
    """Push one product's current state; stores returned Stripe ids on it.

    ACTIVE products are created or updated, anything else is archived.
    Returns None when Stripe is not configured.
    """
    if not _secret_key():
        return None
    if product.status == ProductStatus.ACTIVE:
        result = await update_stripe_product(product)
        if result.success:
            product.stripe_product_id = result.stripe_product_id
            product.stripe_price_id = result.stripe_price_id
    else:
        result = await archive_stripe_product(product.stripe_product_id)
    if not result.success:
        logger.warning("Stripe sync skipped for product %s: %s", product.id, result.error)
    return result
