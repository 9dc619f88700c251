"""SQLAlchemy models for upsell links and product bundles."""

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.models.base import Base, RecordMixin, iso, money


class UpsellType:
    UPSELL = "UPSELL"
    CROSS_SELL = "CROSS_SELL"
    BUNDLE = "BUNDLE"
    DOWNSELL = "DOWNSELL"

    ALL = (UPSELL, CROSS_SELL, BUNDLE, DOWNSELL)


class ProductUpsell(RecordMixin, Base):
    """Offer ``to_product`` alongside or instead of ``from_product``."""

    __tablename__ = "product_upsells"

    from_product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    to_product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=UpsellType.UPSELL)
    discount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    from_product: Mapped["Product"] = relationship(  # noqa: F821
        foreign_keys=[from_product_id], lazy="selectin"
    )
    to_product: Mapped["Product"] = relationship(  # noqa: F821
        foreign_keys=[to_product_id], lazy="selectin"
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "fromProductId": str(self.from_product_id),
            "toProductId": str(self.to_product_id),
            "type": self.type,
            "discount": money(self.discount),
            "message": self.message,
            "position": self.position,
            "isActive": self.is_active,
            "fromProduct": self.from_product.summary() if self.from_product else None,
            "toProduct": self.to_product.summary() if self.to_product else None,
            "createdAt": iso(self.created_at),
        }


class ProductBundle(RecordMixin, Base):
    """A product sold as a set of other products."""

    __tablename__ = "product_bundles"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    savings_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    savings_percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    product: Mapped["Product"] = relationship(lazy="selectin")  # noqa: F821
    items: Mapped[list["BundleItem"]] = relationship(
        back_populates="bundle",
        cascade="all, delete-orphan",
        order_by="BundleItem.position",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "productId": str(self.product_id),
            "savingsAmount": money(self.savings_amount),
            "savingsPercent": money(self.savings_percent),
            "product": self.product.summary() if self.product else None,
            "items": [item.to_dict() for item in self.items],
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class BundleItem(RecordMixin, Base):
    __tablename__ = "bundle_items"

    bundle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("product_bundles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    individual_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    bundle: Mapped["ProductBundle"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship(lazy="selectin")  # noqa: F821

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "productId": str(self.product_id),
            "quantity": self.quantity,
            "individualPrice": money(self.individual_price),
            "position": self.position,
            "product": self.product.summary() if self.product else None,
        }
