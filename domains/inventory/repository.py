"""Inventory repositories: warehouses, stock rows, movements and alerts."""

import uuid
from datetime import datetime

from sqlalchemy import and_, func, or_, select, update

from domains.catalog.models.db_models import Product
from domains.inventory.models.db_models import Inventory, StockAlert, StockMovement, Warehouse
from patterns.repository import BaseRepository


def _variant_clause(column, variant_id: uuid.UUID | None):
    return column.is_(None) if variant_id is None else column == variant_id


class WarehouseRepository(BaseRepository[Warehouse]):
    model = Warehouse

    async def get_default(self) -> Warehouse | None:
        stmt = select(Warehouse).where(Warehouse.is_default.is_(True)).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self, active_only: bool = False) -> list[Warehouse]:
        stmt = select(Warehouse).order_by(Warehouse.is_default.desc(), Warehouse.name)
        if active_only:
            stmt = stmt.where(Warehouse.is_active.is_(True))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def clear_default(self) -> None:
        await self.session.execute(
            update(Warehouse).where(Warehouse.is_default.is_(True)).values(is_default=False)
        )


class InventoryRepository(BaseRepository[Inventory]):
    model = Inventory

    async def find_triple(
        self,
        product_id: uuid.UUID,
        variant_id: uuid.UUID | None,
        warehouse_id: uuid.UUID,
    ) -> Inventory | None:
        stmt = select(Inventory).where(
            Inventory.product_id == product_id,
            _variant_clause(Inventory.variant_id, variant_id),
            Inventory.warehouse_id == warehouse_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def search(
        self,
        search: str | None = None,
        warehouse_id: uuid.UUID | None = None,
        low_stock: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Inventory], int]:
        """Stock rows joined to their product, newest change first."""
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
        if warehouse_id is not None:
            conditions.append(Inventory.warehouse_id == warehouse_id)
        if low_stock:
            conditions.append(Inventory.quantity <= Inventory.low_stock_threshold)

        where = and_(*conditions) if conditions else None
        stmt = select(Inventory).join(Product, Inventory.product_id == Product.id)
        count_stmt = (
            select(func.count())
            .select_from(Inventory)
            .join(Product, Inventory.product_id == Product.id)
        )
        if where is not None:
            stmt = stmt.where(where)
            count_stmt = count_stmt.where(where)

        stmt = stmt.order_by(Inventory.updated_at.desc()).offset((page - 1) * limit).limit(limit)
        rows = list((await self.session.execute(stmt)).scalars().all())
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return rows, total

    async def available_by_product(self, product_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
        """Sum of sellable quantity per product across all warehouses."""
        if not product_ids:
            return {}
        stmt = (
            select(
                Inventory.product_id,
                func.sum(Inventory.quantity - Inventory.reserved_quantity),
            )
            .where(Inventory.product_id.in_(product_ids))
            .group_by(Inventory.product_id)
        )
        result = await self.session.execute(stmt)
        return {product_id: int(total or 0) for product_id, total in result.all()}

    async def count_low_stock(self) -> int:
        stmt = select(func.count()).select_from(Inventory).where(
            Inventory.quantity <= Inventory.low_stock_threshold
        )
        return (await self.session.execute(stmt)).scalar() or 0


class StockMovementRepository(BaseRepository[StockMovement]):
    model = StockMovement

    async def search(
        self,
        product_id: uuid.UUID | None = None,
        movement_type: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[StockMovement], int]:
        conditions = []
        if product_id is not None:
            conditions.append(Inventory.product_id == product_id)
        if movement_type:
            conditions.append(StockMovement.type == movement_type)
        if start_date is not None:
            conditions.append(StockMovement.created_at >= start_date)
        if end_date is not None:
            conditions.append(StockMovement.created_at <= end_date)

        stmt = select(StockMovement).join(Inventory, StockMovement.inventory_id == Inventory.id)
        count_stmt = (
            select(func.count())
            .select_from(StockMovement)
            .join(Inventory, StockMovement.inventory_id == Inventory.id)
        )
        if conditions:
            stmt = stmt.where(*conditions)
            count_stmt = count_stmt.where(*conditions)

        stmt = stmt.order_by(StockMovement.created_at.desc()).offset((page - 1) * limit).limit(limit)
        rows = list((await self.session.execute(stmt)).scalars().all())
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return rows, total


class StockAlertRepository(BaseRepository[StockAlert]):
    model = StockAlert

    async def find_triple(
        self,
        product_id: uuid.UUID,
        variant_id: uuid.UUID | None,
        warehouse_id: uuid.UUID,
    ) -> StockAlert | None:
        stmt = select(StockAlert).where(
            StockAlert.product_id == product_id,
            _variant_clause(StockAlert.variant_id, variant_id),
            StockAlert.warehouse_id == warehouse_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_state(self, resolved: bool = False) -> list[StockAlert]:
        stmt = (
            select(StockAlert)
            .where(StockAlert.is_resolved.is_(resolved))
            .order_by(StockAlert.current_quantity, StockAlert.updated_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
