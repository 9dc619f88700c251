"""Stock adjustment and inventory queries.

adjust_stock() is the single write path for on-hand quantities: it
computes the new level with the pure movement rules, refuses to go
negative, records the movement and keeps the low-stock alert for the
(product, variant, warehouse) triple in step. All writes share the
caller's transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictError, InsufficientStockError, NotFoundError, ValidationFailed
from core.models.base import utcnow
from domains.catalog.models.db_models import Product, ProductVariant
from domains.inventory.models.db_models import Inventory, StockAlert, StockMovement, Warehouse
from domains.inventory.repository import (
    InventoryRepository,
    StockAlertRepository,
    StockMovementRepository,
    WarehouseRepository,
)
from patterns.domain_config import StoreConfig, config as default_config
from patterns.repository import as_uuid, pagination
from patterns.rules_engine import MovementType, check_non_negative_stock, compute_movement, is_low_stock

logger = logging.getLogger(__name__)


@dataclass
class StockAdjustment:
    """Result of adjust_stock()."""

    inventory: Inventory
    movement: StockMovement
    alert: StockAlert | None = None

    def to_dict(self) -> dict:
        return {
            "inventory": self.inventory.to_dict(),
            "movement": self.movement.to_dict(),
            "alert": self.alert.to_dict() if self.alert else None,
        }


# ---------------------------------------------------------------------------
# Warehouses
# ---------------------------------------------------------------------------

async def get_or_create_default_warehouse(
    session: AsyncSession,
    config: StoreConfig = default_config,
) -> Warehouse:
    repo = WarehouseRepository(session)
    warehouse = await repo.get_default()
    if warehouse is None:
        warehouse = await repo.create({
            "name": config.inventory.default_warehouse_name,
            "code": config.inventory.default_warehouse_code,
            "is_default": True,
            "is_active": True,
        })
        logger.info("Created default warehouse %s", warehouse.code)
    return warehouse


async def list_warehouses(session: AsyncSession, active_only: bool = False) -> list[Warehouse]:
    return await WarehouseRepository(session).list_all(active_only=active_only)


async def create_warehouse(session: AsyncSession, data: dict) -> Warehouse:
    repo = WarehouseRepository(session)
    if not data.get("name") or not data.get("code"):
        raise ValidationFailed("Name and code are required")
    data["code"] = data["code"].upper()
    if await repo.get_by(code=data["code"]) is not None:
        raise ConflictError("A warehouse with this code already exists")
    if data.get("is_default"):
        await repo.clear_default()
    return await repo.create(data)


# ---------------------------------------------------------------------------
# Stock adjustment
# ---------------------------------------------------------------------------

async def adjust_stock(
    session: AsyncSession,
    product_id,
    quantity: int,
    movement_type: str,
    variant_id=None,
    warehouse_id=None,
    reason: str | None = None,
    reference: str | None = None,
    config: StoreConfig = default_config,
) -> StockAdjustment:
    """Apply one stock movement.

    IN and RETURN add ``quantity``; OUT, DAMAGE, LOSS and TRANSFER remove
    it; ADJUSTMENT sets the on-hand value to ``quantity``. Raises
    InsufficientStockError when the result would be negative, in which
    case no movement is written.
    """
    try:
        movement_type = MovementType(movement_type)
    except ValueError:
        raise ValidationFailed("Invalid movement type") from None
    if quantity is None or quantity < 0:
        raise ValidationFailed("Quantity must be zero or greater")

    product_uuid = as_uuid(product_id)
    if product_uuid is None or await session.get(Product, product_uuid) is None:
        raise NotFoundError("Product not found")
    variant_uuid = None
    if variant_id:
        variant_uuid = as_uuid(variant_id)
        variant = await session.get(ProductVariant, variant_uuid) if variant_uuid else None
        if variant is None or variant.product_id != product_uuid:
            raise NotFoundError("Variant not found")

    if warehouse_id:
        warehouse = await WarehouseRepository(session).get(warehouse_id)
        if warehouse is None:
            raise NotFoundError("Warehouse not found")
    else:
        warehouse = await get_or_create_default_warehouse(session, config)

    inventory_repo = InventoryRepository(session)
    inventory = await inventory_repo.find_triple(product_uuid, variant_uuid, warehouse.id)
    current = inventory.quantity if inventory is not None else 0

    new_quantity, delta = compute_movement(current, quantity, movement_type)
    stock_check = check_non_negative_stock(new_quantity)
    if not stock_check.passed:
        raise InsufficientStockError(stock_check.message)

    if inventory is None:
        inventory = await inventory_repo.create({
            "product_id": product_uuid,
            "variant_id": variant_uuid,
            "warehouse_id": warehouse.id,
            "quantity": 0,
            "reserved_quantity": 0,
            "low_stock_threshold": config.inventory.low_stock_threshold,
        })

    inventory.quantity = new_quantity
    movement = await StockMovementRepository(session).create({
        "inventory_id": inventory.id,
        "type": movement_type.value,
        "quantity": delta,
        "reason": reason or None,
        "reference": reference or None,
    })
    alert = await _sync_alert(session, inventory)

    logger.info(
        "Stock %s %+d for product %s at %s: %d -> %d",
        movement_type.value, delta, product_uuid, warehouse.code, current, new_quantity,
    )
    inventory = await inventory_repo.get(inventory.id)
    movement = await StockMovementRepository(session).get(movement.id)
    return StockAdjustment(inventory=inventory, movement=movement, alert=alert)


async def _sync_alert(session: AsyncSession, inventory: Inventory) -> StockAlert | None:
    """Open/refresh the triple's alert when low, resolve it otherwise."""
    repo = StockAlertRepository(session)
    alert = await repo.find_triple(inventory.product_id, inventory.variant_id, inventory.warehouse_id)

    if is_low_stock(inventory.quantity, inventory.low_stock_threshold):
        if alert is None:
            alert = await repo.create({
                "product_id": inventory.product_id,
                "variant_id": inventory.variant_id,
                "warehouse_id": inventory.warehouse_id,
                "current_quantity": inventory.quantity,
                "threshold": inventory.low_stock_threshold,
                "is_resolved": False,
            })
        else:
            await repo.update(alert, {
                "current_quantity": inventory.quantity,
                "threshold": inventory.low_stock_threshold,
                "is_resolved": False,
                "notified_at": None,
                "resolved_at": None,
            })
        logger.info(
            "Low stock alert for product %s: %d <= %d",
            inventory.product_id, inventory.quantity, inventory.low_stock_threshold,
        )
        return alert

    if alert is not None and not alert.is_resolved:
        await repo.update(alert, {
            "current_quantity": inventory.quantity,
            "is_resolved": True,
            "resolved_at": utcnow(),
        })
        logger.info("Resolved low stock alert for product %s", inventory.product_id)
        return alert
    return None


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def list_inventory(
    session: AsyncSession,
    search: str | None = None,
    warehouse_id: str | None = None,
    low_stock: bool = False,
    page: int = 1,
    limit: int = 20,
) -> dict:
    warehouse_uuid = as_uuid(warehouse_id) if warehouse_id else None
    if warehouse_id and warehouse_uuid is None:
        return {"inventory": [], "lowStockCount": 0, "pagination": pagination(page, limit, 0)}
    rows, total = await InventoryRepository(session).search(
        search=search,
        warehouse_id=warehouse_uuid,
        low_stock=low_stock,
        page=page,
        limit=limit,
    )
    return {
        "inventory": [row.to_dict() for row in rows],
        "lowStockCount": sum(1 for row in rows if row.is_low_stock),
        "pagination": pagination(page, limit, total),
    }


async def list_movements(
    session: AsyncSession,
    product_id: str | None = None,
    movement_type: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    if movement_type:
        try:
            movement_type = MovementType(movement_type).value
        except ValueError:
            raise ValidationFailed("Invalid movement type") from None
    product_uuid = as_uuid(product_id) if product_id else None
    if product_id and product_uuid is None:
        return {"movements": [], "pagination": pagination(page, limit, 0)}
    rows, total = await StockMovementRepository(session).search(
        product_id=product_uuid,
        movement_type=movement_type,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return {
        "movements": [row.to_dict() for row in rows],
        "pagination": pagination(page, limit, total),
    }


async def list_alerts(session: AsyncSession, resolved: bool = False) -> list[StockAlert]:
    return await StockAlertRepository(session).list_by_state(resolved=resolved)
