"""SQLAlchemy models for orders and their line items.

Statuses are stored as strings; the allowed values and transitions live
in patterns.workflow_states.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.models.base import Base, RecordMixin, UTCDateTime, iso, money
from patterns.workflow_states import FulfillmentStatus, OrderStatus, PaymentStatus


class PaymentMethod:
    CASH = "CASH"
    CARD = "CARD"


class Order(RecordMixin, Base):
    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderStatus.PENDING.value, index=True
    )
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value
    )
    fulfillment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=FulfillmentStatus.UNFULFILLED.value
    )
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentMethod.CARD)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    shipping_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    coupon_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    shipping_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_address1: Mapped[str | None] = mapped_column(String(300), nullable=True)
    shipping_address2: Mapped[str | None] = mapped_column(String(300), nullable=True)
    shipping_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    shipping_country: Mapped[str | None] = mapped_column(String(2), nullable=True)

    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    fulfilled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    shipped_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    stripe_session_id: Mapped[str | None] = mapped_column(String(200), unique=True, nullable=True)

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def shipping_address(self) -> dict | None:
        if not self.shipping_address1:
            return None
        return {
            "firstName": self.shipping_first_name,
            "lastName": self.shipping_last_name,
            "address1": self.shipping_address1,
            "address2": self.shipping_address2,
            "city": self.shipping_city,
            "state": self.shipping_state,
            "postalCode": self.shipping_postal_code,
            "country": self.shipping_country,
        }

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "orderNumber": self.order_number,
            "email": self.email,
            "phone": self.phone,
            "status": self.status,
            "paymentStatus": self.payment_status,
            "fulfillmentStatus": self.fulfillment_status,
            "paymentMethod": self.payment_method,
            "subtotal": money(self.subtotal),
            "shippingAmount": money(self.shipping_amount),
            "taxAmount": money(self.tax_amount),
            "discountAmount": money(self.discount_amount),
            "total": money(self.total),
            "currency": self.currency,
            "couponCode": self.coupon_code,
            "notes": self.notes,
            "trackingNumber": self.tracking_number,
            "shippingAddress": self.shipping_address(),
            "paidAt": iso(self.paid_at),
            "fulfilledAt": iso(self.fulfilled_at),
            "shippedAt": iso(self.shipped_at),
            "deliveredAt": iso(self.delivered_at),
            "cancelledAt": iso(self.cancelled_at),
            "items": [item.to_dict() for item in self.items],
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class OrderItem(RecordMixin, Base):
    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    image: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    order: Mapped["Order"] = relationship(back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "productId": str(self.product_id) if self.product_id else None,
            "name": self.name,
            "sku": self.sku,
            "quantity": self.quantity,
            "price": money(self.price),
            "total": money(self.total),
            "image": self.image,
        }
