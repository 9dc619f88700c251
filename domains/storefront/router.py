"""External storefront API, mounted under /api/external.

Every endpoint except the Stripe webhook needs an API key carrying the
permission named in its dependency. CORS headers are added by
ExternalCorsMiddleware.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.auth import require_permission
from core.database import get_session
from core.errors import ValidationFailed
from domains.coupons import service as coupons
from domains.merchandising import service as merchandising
from domains.merchandising.models.schemas import BundleCreate, BundleUpdate
from domains.settings.models.db_models import ApiKey
from domains.storefront import service, webhooks
from domains.storefront.models.schemas import CheckoutRequest

router = APIRouter()


# ============================================================================
# Catalog
# ============================================================================

@router.get("/products", dependencies=[Depends(require_permission("read"))])
async def list_products(
    sku: Optional[str] = None,
    id: Optional[str] = None,
    slug: Optional[str] = None,
    featured: bool = False,
    category: Optional[str] = None,
    country: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
):
    """ACTIVE products with regional prices for ``country``."""
    return await service.list_products(
        session,
        sku=sku,
        product_id=id,
        slug=slug,
        featured=featured,
        category_slug=category,
        country=country,
    )


@router.get("/config", dependencies=[Depends(require_permission("read"))])
async def store_config(country: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    return await service.store_config(session, country)


# ============================================================================
# Bundles
# ============================================================================

@router.get("/bundles", dependencies=[Depends(require_permission("read"))])
async def list_bundles(
    id: Optional[str] = None,
    product_id: Optional[str] = Query(None, alias="productId"),
    session: AsyncSession = Depends(get_session),
):
    bundles = await merchandising.list_bundles(session, bundle_id=id, product_id=product_id)
    return {
        "success": True,
        "bundles": [service.transform_bundle(bundle) for bundle in bundles],
        "count": len(bundles),
    }


@router.post("/bundles", status_code=201, dependencies=[Depends(require_permission("write"))])
async def create_bundle(request: BundleCreate, session: AsyncSession = Depends(get_session)):
    bundle = await merchandising.create_bundle(session, request.model_dump())
    return {"success": True, "bundle": service.transform_bundle(bundle)}


@router.put("/bundles", dependencies=[Depends(require_permission("write"))])
async def update_bundle(request: BundleUpdate, session: AsyncSession = Depends(get_session)):
    if not request.id:
        raise ValidationFailed("id is required")
    data = request.model_dump(exclude_unset=True)
    bundle = await merchandising.update_bundle(session, data.pop("id"), data)
    return {"success": True, "bundle": service.transform_bundle(bundle)}


@router.delete("/bundles", dependencies=[Depends(require_permission("write"))])
async def delete_bundle(id: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    if not id:
        raise ValidationFailed("id is required")
    await merchandising.delete_bundle(session, id)
    return {"success": True, "message": "Bundle deleted successfully"}


# ============================================================================
# Coupons
# ============================================================================

@router.get("/coupons", dependencies=[Depends(require_permission("read"))])
async def get_coupons(
    code: Optional[str] = None,
    all: bool = False,
    session: AsyncSession = Depends(get_session),
):
    """``code`` validates one coupon, ``all=true`` lists every valid one,
    otherwise the best percentage coupon (or null) for promo banners.
    """
    if code:
        coupon = await coupons.find_valid_coupon(session, code)
        return {"success": True, "coupon": coupons.transform_coupon(coupon)}
    if all:
        valid = await coupons.list_valid_coupons(session)
        return {
            "success": True,
            "coupons": [coupons.transform_coupon(c) for c in valid],
            "count": len(valid),
        }
    best = await coupons.best_percentage_coupon(session)
    return {"success": True, "coupon": coupons.transform_coupon(best) if best else None}


# ============================================================================
# Checkout & payments
# ============================================================================

@router.post("/checkout")
async def create_checkout(
    request: CheckoutRequest,
    api_key: ApiKey = Depends(require_permission("checkout")),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_checkout_session(session, request.model_dump(), api_key.name)


@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request, session: AsyncSession = Depends(get_session)):
    """Stripe calls this directly; the signature replaces the API key."""
    payload = await request.body()
    return await webhooks.process_webhook(session, payload, request.headers.get("Stripe-Signature"))
