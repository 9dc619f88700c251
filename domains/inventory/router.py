"""Inventory API router: stock levels, adjustments, movements, warehouses."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.inventory import service
from domains.inventory.models.schemas import StockAdjustRequest, WarehouseCreate

router = APIRouter()


# ============================================================================
# Stock
# ============================================================================

@router.get("/inventory")
async def list_inventory(
    search: Optional[str] = None,
    warehouse_id: Optional[str] = Query(None, alias="warehouseId"),
    low_stock: bool = Query(False, alias="lowStock"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    """Stock rows with product, variant and warehouse details."""
    return await service.list_inventory(
        session,
        search=search,
        warehouse_id=warehouse_id,
        low_stock=low_stock,
        page=page,
        limit=limit,
    )


@router.post("/inventory/adjust")
async def adjust_stock(
    request: StockAdjustRequest,
    session: AsyncSession = Depends(get_session),
):
    """Apply a stock movement to a product/variant/warehouse."""
    result = await service.adjust_stock(
        session,
        product_id=request.product_id,
        quantity=request.quantity,
        movement_type=request.type,
        variant_id=request.variant_id,
        warehouse_id=request.warehouse_id,
        reason=request.reason,
        reference=request.reference,
    )
    return {"success": True, **result.to_dict()}


@router.get("/inventory/movements")
async def list_movements(
    product_id: Optional[str] = Query(None, alias="productId"),
    type: Optional[str] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_movements(
        session,
        product_id=product_id,
        movement_type=type,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.get("/inventory/alerts")
async def list_alerts(
    resolved: bool = False,
    session: AsyncSession = Depends(get_session),
):
    alerts = await service.list_alerts(session, resolved=resolved)
    return {"alerts": [alert.to_dict() for alert in alerts], "count": len(alerts)}


# ============================================================================
# Warehouses
# ============================================================================

@router.get("/warehouses")
async def list_warehouses(
    active_only: bool = Query(False, alias="activeOnly"),
    session: AsyncSession = Depends(get_session),
):
    warehouses = await service.list_warehouses(session, active_only=active_only)
    return {"warehouses": [w.to_dict() for w in warehouses]}


@router.post("/warehouses", status_code=201)
async def create_warehouse(
    request: WarehouseCreate,
    session: AsyncSession = Depends(get_session),
):
    warehouse = await service.create_warehouse(session, request.model_dump())
    return {"warehouse": warehouse.to_dict()}
