"""Merchandising API router: upsell links and bundles."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.merchandising import service
from domains.merchandising.models.schemas import BundleCreate, BundleUpdate, UpsellCreate, UpsellUpdate

router = APIRouter()


# ============================================================================
# Upsells
# ============================================================================

@router.get("/upsells")
async def list_upsells(
    product_id: Optional[str] = Query(None, alias="productId"),
    type: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
):
    """Upsell links where the product is on either side."""
    upsells = await service.list_upsells(session, product_id=product_id, upsell_type=type)
    return {"upsells": [upsell.to_dict() for upsell in upsells]}


@router.post("/upsells", status_code=201)
async def create_upsell(request: UpsellCreate, session: AsyncSession = Depends(get_session)):
    upsell = await service.create_upsell(session, request.model_dump())
    return {"upsell": upsell.to_dict()}


@router.get("/upsells/{upsell_id}")
async def get_upsell(upsell_id: str, session: AsyncSession = Depends(get_session)):
    upsell = await service.get_upsell(session, upsell_id)
    return {"upsell": upsell.to_dict()}


@router.put("/upsells/{upsell_id}")
async def update_upsell(
    upsell_id: str,
    request: UpsellUpdate,
    session: AsyncSession = Depends(get_session),
):
    upsell = await service.update_upsell(session, upsell_id, request.model_dump(exclude_unset=True))
    return {"upsell": upsell.to_dict()}


@router.delete("/upsells/{upsell_id}")
async def delete_upsell(upsell_id: str, session: AsyncSession = Depends(get_session)):
    await service.delete_upsell(session, upsell_id)
    return {"success": True}


# ============================================================================
# Bundles
# ============================================================================

@router.get("/bundles")
async def list_bundles(
    product_id: Optional[str] = Query(None, alias="productId"),
    session: AsyncSession = Depends(get_session),
):
    bundles = await service.list_bundles(session, product_id=product_id)
    return {"bundles": [bundle.to_dict() for bundle in bundles], "count": len(bundles)}


@router.post("/bundles", status_code=201)
async def create_bundle(request: BundleCreate, session: AsyncSession = Depends(get_session)):
    bundle = await service.create_bundle(session, request.model_dump())
    return {"bundle": bundle.to_dict()}


@router.get("/bundles/{bundle_id}")
async def get_bundle(bundle_id: str, session: AsyncSession = Depends(get_session)):
    bundle = await service.get_bundle(session, bundle_id)
    return {"bundle": bundle.to_dict()}


@router.put("/bundles/{bundle_id}")
async def update_bundle(
    bundle_id: str,
    request: BundleUpdate,
    session: AsyncSession = Depends(get_session),
):
    bundle = await service.update_bundle(session, bundle_id, request.model_dump(exclude_unset=True))
    return {"bundle": bundle.to_dict()}


@router.delete("/bundles/{bundle_id}")
async def delete_bundle(bundle_id: str, session: AsyncSession = Depends(get_session)):
    await service.delete_bundle(session, bundle_id)
    return {"success": True}
