"""Coupon administration router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.coupons import service
from domains.coupons.models.schemas import CouponCreate, CouponUpdate

router = APIRouter()


@router.get("/coupons")
async def list_coupons(
    search: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_coupons(session, search=search, is_active=is_active, page=page, limit=limit)


@router.post("/coupons", status_code=201)
async def create_coupon(request: CouponCreate, session: AsyncSession = Depends(get_session)):
    coupon = await service.create_coupon(session, request.model_dump())
    return {"coupon": coupon.to_dict()}


@router.get("/coupons/{coupon_id}")
async def get_coupon(coupon_id: str, session: AsyncSession = Depends(get_session)):
    """Coupon with its ten most recent redemptions."""
    return {"coupon": await service.get_coupon_detail(session, coupon_id)}


@router.put("/coupons/{coupon_id}")
async def update_coupon(
    coupon_id: str,
    request: CouponUpdate,
    session: AsyncSession = Depends(get_session),
):
    coupon = await service.update_coupon(session, coupon_id, request.model_dump(exclude_unset=True))
    return {"coupon": coupon.to_dict()}


@router.delete("/coupons/{coupon_id}")
async def delete_coupon(coupon_id: str, session: AsyncSession = Depends(get_session)):
    return await service.delete_coupon(session, coupon_id)
