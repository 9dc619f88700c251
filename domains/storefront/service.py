"""Read models and checkout for the external storefront.

Everything here is reached through API-key authenticated endpoints, so
responses carry only public data: no cost prices, no secrets.
"""

import logging
import os

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from core.errors import ServiceUnavailable, ValidationFailed
from core.models.base import iso, money
from domains.catalog.models.db_models import Category, Product, ProductStatus
from domains.coupons import service as coupons
from domains.inventory.repository import InventoryRepository
from domains.merchandising.models.db_models import ProductBundle
from domains.pricing.currencies import currency_locale, currency_symbol
from domains.pricing.models.db_models import PricingRegion
from domains.pricing.service import price_products, resolve_region
from domains.settings.service import get_or_create_settings, get_store_settings
from patterns.repository import as_uuid
from patterns.rules_engine import apply_percentage

logger = logging.getLogger(__name__)

EXTERNAL_IMAGE_LIMIT = 5


def region_summary(region: PricingRegion | None) -> dict | None:
    if region is None:
        return None
    return {"code": region.code, "name": region.name, "currency": region.currency}


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

async def list_products(
    session: AsyncSession,
    sku: str | None = None,
    product_id: str | None = None,
    slug: str | None = None,
    featured: bool = False,
    category_slug: str | None = None,
    country: str | None = None,
) -> dict:
    """ACTIVE products priced for ``country``, with summed available stock."""
    region = await resolve_region(session, country)

    stmt = select(Product).where(Product.status == ProductStatus.ACTIVE)
    if sku:
        stmt = stmt.where(Product.sku == sku)
    if product_id:
        stmt = stmt.where(Product.id == as_uuid(product_id))
    if slug:
        stmt = stmt.where(Product.slug == slug)
    if featured:
        stmt = stmt.where(Product.featured.is_(True))
    if category_slug:
        stmt = stmt.where(Product.category.has(Category.slug == category_slug))
    stmt = stmt.order_by(Product.featured.desc(), Product.created_at.desc())
    products = list((await session.execute(stmt)).scalars().all())

    prices = await price_products(session, products, region)
    stock = await InventoryRepository(session).available_by_product([p.id for p in products])

    items = []
    for product in products:
        price = prices[product.id]
        items.append({
            "id": str(product.id),
            "sku": product.sku,
            "slug": product.slug,
            "name": product.name,
            "description": product.description,
            "shortDescription": product.short_description,
            **price.to_dict(),
            "stock": stock.get(product.id, 0),
            "isActive": product.status == ProductStatus.ACTIVE,
            "featured": product.featured,
            "images": [
                {"url": image.url, "altText": image.alt_text, "isPrimary": image.is_primary}
                for image in product.images[:EXTERNAL_IMAGE_LIMIT]
            ],
            "category": (
                {
                    "id": str(product.category.id),
                    "name": product.category.name,
                    "slug": product.category.slug,
                }
                if product.category
                else None
            ),
        })

    return {
        "success": True,
        "products": items,
        "count": len(items),
        "region": region_summary(region),
    }


# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------

def _external_product(product: Product) -> dict:
    return {
        "id": str(product.id),
        "sku": product.sku,
        "slug": product.slug,
        "name": product.name,
        "price": money(product.price),
        "compareAtPrice": money(product.compare_at_price),
        "image": product.images[0].url if product.images else None,
    }


def transform_bundle(bundle: ProductBundle) -> dict:
    return {
        "id": str(bundle.id),
        "productId": str(bundle.product_id),
        "savingsAmount": money(bundle.savings_amount),
        "savingsPercent": money(bundle.savings_percent),
        "product": {
            **_external_product(bundle.product),
            "isActive": bundle.product.status == ProductStatus.ACTIVE,
        },
        "items": [
            {
                "id": str(item.id),
                "quantity": item.quantity,
                "individualPrice": money(item.individual_price),
                "position": item.position,
                "product": _external_product(item.product),
            }
            for item in bundle.items
        ],
        "createdAt": iso(bundle.created_at),
        "updatedAt": iso(bundle.updated_at),
    }


# ---------------------------------------------------------------------------
# Store config
# ---------------------------------------------------------------------------

async def store_config(session: AsyncSession, country: str | None = None) -> dict:
    """Public store configuration. Secret keys never leave the server."""
    region = await resolve_region(session, country)
    settings = await get_or_create_settings(session)
    currency = region.currency if region else settings.currency
    return {
        "success": True,
        "config": {
            "storeName": settings.store_name,
            "storeUrl": settings.store_url,
            "currency": currency,
            "currencySymbol": currency_symbol(currency),
            "locale": currency_locale(currency),
            "stripe": {
                "enabled": bool(os.getenv("STRIPE_SECRET_KEY")),
                "publishableKey": os.getenv("STRIPE_PUBLISHABLE_KEY") or None,
            },
            "paypal": {
                "enabled": settings.paypal_enabled,
                "clientId": settings.paypal_client_id,
            },
        },
        "region": region_summary(region),
    }


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------

def _format_percent(value) -> str:
    return f"{float(value):g}"


async def create_checkout_session(session: AsyncSession, data: dict, api_key_name: str) -> dict:
    """Create a Stripe Checkout session for the posted cart.

    Item prices arrive in minor units. An active, unexpired PERCENTAGE
    coupon lowers every unit amount before the session is created.
    """
    settings = await get_store_settings(session)
    if settings is None:
        raise ServiceUnavailable("Store not configured")
    secret_key = os.getenv("STRIPE_SECRET_KEY")
    if not secret_key:
        raise ServiceUnavailable("Stripe is not configured")

    items = data.get("items") or []
    if not items:
        raise ValidationFailed("No items provided")
    if not data.get("success_url") or not data.get("cancel_url"):
        raise ValidationFailed("Missing successUrl or cancelUrl")

    coupon = await coupons.checkout_coupon(session, data.get("coupon_code"))
    discount_percent = float(coupon.value) if coupon else 0.0

    line_items = []
    for item in items:
        product_data = {"name": item["name"]}
        if item.get("description"):
            product_data["description"] = item["description"]
        if item.get("image"):
            product_data["images"] = [item["image"]]
        line_items.append({
            "price_data": {
                "currency": settings.currency.lower(),
                "product_data": product_data,
                "unit_amount": apply_percentage(int(item["price"]), discount_percent),
            },
            "quantity": item["quantity"],
        })

    metadata = {
        **(data.get("metadata") or {}),
        "couponCode": data.get("coupon_code") or "",
        "discountPercent": _format_percent(discount_percent),
        "apiKeyName": api_key_name,
    }
    params = {
        "payment_method_types": ["card"],
        "line_items": line_items,
        "mode": "payment",
        "success_url": data["success_url"],
        "cancel_url": data["cancel_url"],
        "metadata": metadata,
    }
    if data.get("customer_email"):
        params["customer_email"] = data["customer_email"]

    try:
        checkout = await run_in_threadpool(stripe.checkout.Session.create, api_key=secret_key, **params)
    except stripe.StripeError as exc:
        logger.error("Stripe checkout failed: %s", exc)
        raise ValidationFailed(exc.user_message or str(exc) or "Failed to create checkout session") from exc

    logger.info(
        "Checkout session %s created for %s (%d items, %s%% off)",
        checkout.id, api_key_name, len(line_items), metadata["discountPercent"],
    )
    return {"success": True, "sessionId": checkout.id, "url": checkout.url}
