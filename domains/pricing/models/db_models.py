"""SQLAlchemy models for pricing regions and per-region product prices."""

import uuid
from decimal import Decimal

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.models.base import Base, RecordMixin, iso, money


class PricingRegion(RecordMixin, Base):
    """Countries sharing a currency and a price list."""

    __tablename__ = "pricing_regions"

    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    # ISO-3166 alpha-2 codes, upper-case
    countries: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def covers(self, country_code: str) -> bool:
        return country_code.upper() in (self.countries or [])

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "code": self.code,
            "name": self.name,
            "currency": self.currency,
            "countries": list(self.countries or []),
            "isDefault": self.is_default,
            "sortOrder": self.sort_order,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class ProductRegionPrice(RecordMixin, Base):
    """Override of a product's base price inside one region."""

    __tablename__ = "product_region_prices"
    __table_args__ = (
        UniqueConstraint("product_id", "region_id", name="uq_product_region_price"),
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    region_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("pricing_regions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    compare_at_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    region: Mapped["PricingRegion"] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "productId": str(self.product_id),
            "regionId": str(self.region_id),
            "price": money(self.price),
            "compareAtPrice": money(self.compare_at_price),
        }
