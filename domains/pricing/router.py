"""Pricing API router: regions, country resolution, per-product overrides."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.pricing import service
from domains.pricing.models.schemas import RegionalPricesUpdate, RegionCreate, RegionUpdate

router = APIRouter()


# ============================================================================
# Regions
# ============================================================================

@router.get("/pricing-regions")
async def list_regions(session: AsyncSession = Depends(get_session)):
    """All regions by sort order, with how many products override prices."""
    return {"regions": await service.list_regions(session)}


@router.post("/pricing-regions", status_code=201)
async def create_region(
    request: RegionCreate,
    session: AsyncSession = Depends(get_session),
):
    region = await service.create_region(session, request.model_dump())
    return {"region": region.to_dict()}


@router.get("/currencies")
async def list_currencies():
    """Currencies a region or the store settings may use."""
    return {"currencies": service.list_currencies()}


@router.post("/pricing-regions/seed")
async def seed_regions(session: AsyncSession = Depends(get_session)):
    """Create the built-in regions (US, UK, EU, CA, AU, CH, ROW) if missing."""
    created = await service.seed_default_regions(session)
    return {"created": created}


@router.get("/pricing-regions/resolve")
async def resolve_region(
    country: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
):
    region = await service.resolve_region(session, country)
    return {"country": country.upper() if country else None, "region": region.to_dict() if region else None}


@router.get("/pricing-regions/{region_id}")
async def get_region(region_id: str, session: AsyncSession = Depends(get_session)):
    region = await service.get_region(session, region_id)
    return {"region": region.to_dict()}


@router.put("/pricing-regions/{region_id}")
async def update_region(
    region_id: str,
    request: RegionUpdate,
    session: AsyncSession = Depends(get_session),
):
    region = await service.update_region(session, region_id, request.model_dump(exclude_unset=True))
    return {"region": region.to_dict()}


@router.delete("/pricing-regions/{region_id}")
async def delete_region(region_id: str, session: AsyncSession = Depends(get_session)):
    await service.delete_region(session, region_id)
    return {"success": True}


# ============================================================================
# Product regional prices
# ============================================================================

@router.get("/products/{product_id}/prices")
async def get_product_prices(product_id: str, session: AsyncSession = Depends(get_session)):
    return await service.get_product_prices(session, product_id)


@router.put("/products/{product_id}/prices")
async def set_product_prices(
    product_id: str,
    request: RegionalPricesUpdate,
    session: AsyncSession = Depends(get_session),
):
    """``price: null`` removes a region's override."""
    entries = [entry.model_dump() for entry in request.prices]
    results = await service.set_product_prices(session, product_id, entries)
    return {"success": True, "results": results}
