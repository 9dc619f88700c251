"""SQLAlchemy models for discount coupons and their redemptions."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, RecordMixin, UTCDateTime, iso, money


class CouponType:
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    FREE_SHIPPING = "FREE_SHIPPING"

    ALL = (PERCENTAGE, FIXED_AMOUNT, FREE_SHIPPING)


class Coupon(RecordMixin, Base):
    __tablename__ = "coupons"

    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=CouponType.PERCENTAGE)
    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    min_purchase: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    max_discount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    usage_limit_per_user: Mapped[int | None] = mapped_column(Integer, nullable=True, default=1)
    starts_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    applicable_products: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    applicable_categories: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def rule_view(self) -> dict:
        """Plain dict consumed by the pure coupon rules."""
        return {
            "type": self.type,
            "value": self.value,
            "min_purchase": self.min_purchase,
            "max_discount": self.max_discount,
            "usage_limit": self.usage_limit,
            "usage_count": self.usage_count,
            "starts_at": self.starts_at,
            "expires_at": self.expires_at,
            "is_active": self.is_active,
        }

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "code": self.code,
            "description": self.description,
            "type": self.type,
            "value": money(self.value),
            "minPurchase": money(self.min_purchase),
            "maxDiscount": money(self.max_discount),
            "usageLimit": self.usage_limit,
            "usageCount": self.usage_count,
            "usageLimitPerUser": self.usage_limit_per_user,
            "startsAt": iso(self.starts_at),
            "expiresAt": iso(self.expires_at),
            "applicableProducts": list(self.applicable_products or []),
            "applicableCategories": list(self.applicable_categories or []),
            "isActive": self.is_active,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class CouponUsage(RecordMixin, Base):
    """One redemption of a coupon."""

    __tablename__ = "coupon_usages"

    coupon_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True
    )
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "couponId": str(self.coupon_id),
            "orderId": str(self.order_id) if self.order_id else None,
            "email": self.email,
            "createdAt": iso(self.created_at),
        }
