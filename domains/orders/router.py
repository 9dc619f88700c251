"""Order routers.

``router`` is the admin surface (orders and dashboard stats);
``public_router`` takes cash-on-delivery orders from the storefront.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.orders import service
from domains.orders.models.schemas import CodOrderCreate, OrderCreate, OrderUpdate

router = APIRouter()
public_router = APIRouter()


# ============================================================================
# Admin
# ============================================================================

@router.get("/dashboard/stats")
async def dashboard_stats(session: AsyncSession = Depends(get_session)):
    return await service.dashboard_stats(session)


@router.get("/dashboard/orders")
async def list_orders(
    search: Optional[str] = None,
    status: Optional[str] = None,
    payment_status: Optional[str] = Query(None, alias="paymentStatus"),
    fulfillment_status: Optional[str] = Query(None, alias="fulfillmentStatus"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_orders(
        session,
        page=page,
        limit=limit,
        search=search,
        status=status,
        payment_status=payment_status,
        fulfillment_status=fulfillment_status,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("/dashboard/orders", status_code=201)
async def create_order(request: OrderCreate, session: AsyncSession = Depends(get_session)):
    order = await service.create_order(session, request.model_dump())
    return {"order": order.to_dict()}


@router.get("/dashboard/orders/{order_id}")
async def get_order(order_id: str, session: AsyncSession = Depends(get_session)):
    order = await service.get_order(session, order_id)
    return {"order": order.to_dict()}


@router.put("/dashboard/orders/{order_id}")
async def update_order(
    order_id: str,
    request: OrderUpdate,
    session: AsyncSession = Depends(get_session),
):
    order = await service.update_order(session, order_id, request.model_dump(exclude_unset=True))
    return {"order": order.to_dict()}


@router.delete("/dashboard/orders/{order_id}")
async def cancel_order(order_id: str, session: AsyncSession = Depends(get_session)):
    """Cancel a PENDING or PROCESSING order. Orders are never deleted."""
    order = await service.cancel_order(session, order_id)
    return {"success": True, "order": order.to_dict()}


# ============================================================================
# Storefront cash on delivery
# ============================================================================

@public_router.post("/orders")
async def place_cod_order(request: CodOrderCreate, session: AsyncSession = Depends(get_session)):
    order = await service.create_cod_order(session, request.model_dump())
    return {"success": True, "orderNumber": order.order_number, "orderId": str(order.id)}


@public_router.get("/orders")
async def lookup_order(
    order_number: str = Query(..., alias="orderNumber"),
    session: AsyncSession = Depends(get_session),
):
    order = await service.get_order_by_number(session, order_number)
    return {"order": order.to_dict()}
