"""SQLAlchemy models for warehouses, stock levels, movements and alerts.

Stock movements are an append-only audit trail: rows are inserted by
adjust_stock() and never updated.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.models.base import Base, RecordMixin, UTCDateTime, iso


class Warehouse(RecordMixin, Base):
    """A physical stock location."""

    __tablename__ = "warehouses"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "code": self.code,
            "address": self.address,
            "city": self.city,
            "phone": self.phone,
            "email": self.email,
            "isDefault": self.is_default,
            "isActive": self.is_active,
            "createdAt": iso(self.created_at),
        }


class Inventory(RecordMixin, Base):
    """On-hand stock for one (product, variant, warehouse) triple."""

    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("product_id", "variant_id", "warehouse_id", name="uq_inventory_triple"),
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    variant_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=True
    )
    warehouse_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("warehouses.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    product: Mapped["Product"] = relationship(lazy="selectin")  # noqa: F821
    variant: Mapped[Optional["ProductVariant"]] = relationship(lazy="selectin")  # noqa: F821
    warehouse: Mapped["Warehouse"] = relationship(lazy="selectin")

    @property
    def quantity_available(self) -> int:
        return self.quantity - self.reserved_quantity

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "productId": str(self.product_id),
            "variantId": str(self.variant_id) if self.variant_id else None,
            "warehouseId": str(self.warehouse_id),
            "quantity": self.quantity,
            "reservedQuantity": self.reserved_quantity,
            "quantityAvailable": self.quantity_available,
            "lowStockThreshold": self.low_stock_threshold,
            "isLowStock": self.is_low_stock,
            "product": self.product.summary() if self.product else None,
            "variant": self.variant.to_dict() if self.variant else None,
            "warehouse": self.warehouse.to_dict() if self.warehouse else None,
            "updatedAt": iso(self.updated_at),
        }


class StockMovement(RecordMixin, Base):
    """Immutable record of a signed quantity change."""

    __tablename__ = "stock_movements"

    inventory_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("inventory.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)

    inventory: Mapped["Inventory"] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        inventory = self.inventory
        return {
            "id": str(self.id),
            "inventoryId": str(self.inventory_id),
            "type": self.type,
            "quantity": self.quantity,
            "reason": self.reason,
            "reference": self.reference,
            "product": inventory.product.summary() if inventory and inventory.product else None,
            "warehouse": inventory.warehouse.to_dict() if inventory and inventory.warehouse else None,
            "createdAt": iso(self.created_at),
        }


class StockAlert(RecordMixin, Base):
    """Low-stock alert; at most one row per triple, reopened as needed."""

    __tablename__ = "stock_alerts"
    __table_args__ = (
        UniqueConstraint("product_id", "variant_id", "warehouse_id", name="uq_stock_alert_triple"),
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    variant_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=True
    )
    warehouse_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("warehouses.id"), nullable=False
    )
    current_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notified_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    product: Mapped["Product"] = relationship(lazy="selectin")  # noqa: F821

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "productId": str(self.product_id),
            "variantId": str(self.variant_id) if self.variant_id else None,
            "warehouseId": str(self.warehouse_id),
            "currentQuantity": self.current_quantity,
            "threshold": self.threshold,
            "isResolved": self.is_resolved,
            "notifiedAt": iso(self.notified_at),
            "resolvedAt": iso(self.resolved_at),
            "product": self.product.summary() if self.product else None,
            "updatedAt": iso(self.updated_at),
        }
