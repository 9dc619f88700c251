"""Order management.

Status changes go through the order workflow; payment and fulfillment
milestones stamp their timestamp the first time they are reached and
keep it afterwards.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError, ValidationFailed
from core.models.base import iso, money, to_decimal, utcnow
from domains.catalog.models.db_models import Product, ProductStatus
from domains.catalog.utils import generate_order_number
from domains.coupons import service as coupons
from domains.inventory.repository import InventoryRepository
from domains.orders.models.db_models import Order, OrderItem, PaymentMethod
from domains.settings.service import get_or_create_settings
from patterns.repository import BaseRepository, as_uuid, pagination
from patterns.rules_engine import compute_discount
from patterns.workflow_states import (
    CANCELLABLE,
    FulfillmentStatus,
    OrderStatus,
    OrderWorkflow,
    PaymentStatus,
)

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 5
GUEST_EMAIL_DOMAIN = "guest.invalid"
REVENUE_STATUSES = (OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value)

_PAYMENT_STAMPS = {PaymentStatus.PAID.value: "paid_at"}
_FULFILLMENT_STAMPS = {
    FulfillmentStatus.FULFILLED.value: "fulfilled_at",
    FulfillmentStatus.SHIPPED.value: "shipped_at",
    FulfillmentStatus.DELIVERED.value: "delivered_at",
}
_EDITABLE = (
    "email", "phone", "notes", "tracking_number",
    "shipping_first_name", "shipping_last_name", "shipping_address1", "shipping_address2",
    "shipping_city", "shipping_state", "shipping_postal_code", "shipping_country",
)


class OrderRepository(BaseRepository[Order]):
    model = Order

    async def search(
        self,
        search: str | None = None,
        status: str | None = None,
        payment_status: str | None = None,
        fulfillment_status: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Order], int]:
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(
                Order.order_number.ilike(pattern),
                Order.email.ilike(pattern),
                Order.phone.ilike(pattern),
                Order.shipping_last_name.ilike(pattern),
            ))
        if status:
            conditions.append(Order.status == status)
        if payment_status:
            conditions.append(Order.payment_status == payment_status)
        if fulfillment_status:
            conditions.append(Order.fulfillment_status == fulfillment_status)
        if start_date is not None:
            conditions.append(Order.created_at >= start_date)
        if end_date is not None:
            conditions.append(Order.created_at <= end_date)

        stmt = (
            select(Order)
            .where(*conditions)
            .order_by(Order.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(Order).where(*conditions)
        orders = list((await self.session.execute(stmt)).scalars().all())
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return orders, total

    async def number_taken(self, order_number: str) -> bool:
        stmt = select(Order.id).where(Order.order_number == order_number).limit(1)
        return (await self.session.execute(stmt)).first() is not None

    async def count(self, *conditions) -> int:
        stmt = select(func.count()).select_from(Order).where(*conditions)
        return (await self.session.execute(stmt)).scalar() or 0

    async def revenue(self, *conditions) -> Decimal:
        stmt = select(func.coalesce(func.sum(Order.total), 0)).where(
            Order.status.in_(REVENUE_STATUSES), *conditions
        )
        return Decimal(str((await self.session.execute(stmt)).scalar() or 0))

    async def recent(self, limit: int = 5) -> list[Order]:
        stmt = select(Order).order_by(Order.created_at.desc()).limit(limit)
        return list((await self.session.execute(stmt)).scalars().all())


async def unique_order_number(repo: OrderRepository) -> str:
    """A fresh order number, retrying on the rare collision."""
    order_number = generate_order_number()
    for _ in range(ORDER_NUMBER_ATTEMPTS):
        if not await repo.number_taken(order_number):
            break
        order_number = generate_order_number()
    return order_number


def _order_items(items: list[dict]) -> list[OrderItem]:
    rows = []
    for item in items:
        price = to_decimal(item["price"])
        quantity = int(item.get("quantity") or 1)
        rows.append(OrderItem(
            product_id=item.get("product_id"),
            name=item["name"],
            sku=item.get("sku"),
            quantity=quantity,
            price=price,
            total=price * quantity,
            image=item.get("image"),
        ))
    return rows


async def _resolve_items(session: AsyncSession, items: list[dict]) -> list[dict]:
    """Fill name/sku/price/image from the catalog where the caller left them out."""
    resolved = []
    for item in items:
        item = dict(item)
        product_uuid = as_uuid(item.get("product_id")) if item.get("product_id") else None
        product = await session.get(Product, product_uuid) if product_uuid else None
        if item.get("product_id") and product is None:
            raise NotFoundError("Product not found")
        item["product_id"] = product.id if product else None
        if product is not None:
            item["name"] = item.get("name") or product.name
            item["sku"] = item.get("sku") or product.sku
            if item.get("price") is None:
                item["price"] = product.price
            if not item.get("image") and product.images:
                item["image"] = product.images[0].url
        if not item.get("name") or item.get("price") is None:
            raise ValidationFailed("Each item needs a name and a price")
        if int(item.get("quantity") or 0) < 1:
            raise ValidationFailed("Item quantity must be at least 1")
        resolved.append(item)
    return resolved


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

async def list_orders(session: AsyncSession, page: int = 1, limit: int = 20, **filters) -> dict:
    orders, total = await OrderRepository(session).search(page=page, limit=limit, **filters)
    return {
        "orders": [order.to_dict() for order in orders],
        "pagination": pagination(page, limit, total),
    }


async def get_order(session: AsyncSession, order_id: str) -> Order:
    order = await OrderRepository(session).get(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def get_order_by_number(session: AsyncSession, order_number: str) -> Order:
    order = await OrderRepository(session).get_by(order_number=order_number)
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def create_order(session: AsyncSession, data: dict) -> Order:
    """Manual order from the dashboard. Totals are computed from the items."""
    if not data.get("items"):
        raise ValidationFailed("At least one item is required")
    if not data.get("email"):
        raise ValidationFailed("Email is required")

    repo = OrderRepository(session)
    settings = await get_or_create_settings(session)
    items = _order_items(await _resolve_items(session, data.pop("items")))
    subtotal = sum((item.total for item in items), Decimal("0"))
    shipping = to_decimal(data.pop("shipping_amount", None)) or Decimal("0")
    tax = to_decimal(data.pop("tax_amount", None)) or Decimal("0")

    discount = to_decimal(data.pop("discount_amount", None)) or Decimal("0")
    if data.get("coupon_code"):
        coupon = await coupons.find_valid_coupon(session, data["coupon_code"])
        data["coupon_code"] = coupon.code
        discount = compute_discount(coupon.rule_view(), subtotal)

    order = Order(
        **{key: value for key, value in data.items() if key in _EDITABLE or key == "coupon_code"},
        order_number=await unique_order_number(repo),
        status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        fulfillment_status=FulfillmentStatus.UNFULFILLED.value,
        payment_method=data.get("payment_method") or PaymentMethod.CASH,
        subtotal=subtotal,
        shipping_amount=shipping,
        tax_amount=tax,
        discount_amount=discount,
        total=max(subtotal + shipping + tax - discount, Decimal("0")),
        currency=(data.get("currency") or settings.currency).upper(),
    )
    order.items = items
    session.add(order)
    await session.flush()
    if order.coupon_code:
        await coupons.record_usage(session, order.coupon_code, order_id=order.id, email=order.email)
    logger.info("Created order %s (%s %s)", order.order_number, order.total, order.currency)
    return await repo.get(order.id)


def _stamp(order: Order, stamps: dict, value: str, now: datetime) -> None:
    attribute = stamps.get(value)
    if attribute and getattr(order, attribute) is None:
        setattr(order, attribute, now)


async def update_order(session: AsyncSession, order_id: str, data: dict) -> Order:
    """Status, payment/fulfillment progress, tracking and address edits."""
    repo = OrderRepository(session)
    order = await get_order(session, order_id)
    now = utcnow()

    status = data.get("status")
    if status and status != order.status:
        try:
            workflow = OrderWorkflow(order.order_number, OrderStatus(order.status))
            workflow.transition(OrderStatus(status), actor="dashboard")
        except ValueError as exc:
            raise ValidationFailed(str(exc) if status in OrderStatus.__members__ else "Invalid order status") from None
        order.status = status
        if status == OrderStatus.CANCELLED.value:
            order.cancelled_at = now
        logger.info("Order %s moved to %s", order.order_number, status)

    payment_status = data.get("payment_status")
    if payment_status:
        if payment_status not in PaymentStatus.__members__:
            raise ValidationFailed("Invalid payment status")
        order.payment_status = payment_status
        _stamp(order, _PAYMENT_STAMPS, payment_status, now)

    fulfillment_status = data.get("fulfillment_status")
    if fulfillment_status:
        if fulfillment_status not in FulfillmentStatus.__members__:
            raise ValidationFailed("Invalid fulfillment status")
        order.fulfillment_status = fulfillment_status
        _stamp(order, _FULFILLMENT_STAMPS, fulfillment_status, now)

    await repo.update(order, {key: value for key, value in data.items() if key in _EDITABLE})
    return await repo.get(order.id)


async def cancel_order(session: AsyncSession, order_id: str) -> Order:
    order = await get_order(session, order_id)
    if OrderStatus(order.status) not in CANCELLABLE:
        raise ValidationFailed("Only pending or processing orders can be cancelled")
    order.status = OrderStatus.CANCELLED.value
    order.cancelled_at = utcnow()
    await session.flush()
    logger.info("Cancelled order %s", order.order_number)
    return order


# ---------------------------------------------------------------------------
# Storefront cash-on-delivery
# ---------------------------------------------------------------------------

async def create_cod_order(session: AsyncSession, data: dict) -> Order:
    """Cash-on-delivery order placed straight from the storefront."""
    if not data.get("items"):
        raise ValidationFailed("The cart is empty")
    customer = data.get("customer") or {}
    if not customer.get("first_name") or not customer.get("last_name") or not customer.get("phone"):
        raise ValidationFailed("Customer details are incomplete")
    shipping = data.get("shipping") or {}
    if not shipping.get("address") or not shipping.get("city"):
        raise ValidationFailed("Shipping address is incomplete")

    repo = OrderRepository(session)
    settings = await get_or_create_settings(session)
    items = _order_items(await _resolve_items(session, data["items"]))
    subtotal = sum((item.total for item in items), Decimal("0"))
    shipping_cost = to_decimal(data.get("shipping_cost")) or Decimal("0")

    order = Order(
        order_number=await unique_order_number(repo),
        email=customer.get("email") or f"{customer['phone']}@{GUEST_EMAIL_DOMAIN}",
        phone=customer["phone"],
        status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        fulfillment_status=FulfillmentStatus.UNFULFILLED.value,
        payment_method=PaymentMethod.CASH,
        subtotal=subtotal,
        shipping_amount=shipping_cost,
        total=subtotal + shipping_cost,
        currency=settings.currency,
        notes=data.get("notes"),
        shipping_first_name=customer["first_name"],
        shipping_last_name=customer["last_name"],
        shipping_address1=shipping["address"],
        shipping_city=shipping["city"],
        shipping_postal_code=shipping.get("postal_code"),
        shipping_country=(shipping.get("country") or "").upper() or None,
    )
    order.items = items
    session.add(order)
    await session.flush()
    logger.info("Cash on delivery order %s placed (%s %s)", order.order_number, order.total, order.currency)
    return order


# ---------------------------------------------------------------------------
# Stripe checkout
# ---------------------------------------------------------------------------

async def create_paid_order(session: AsyncSession, data: dict) -> Order | None:
    """CONFIRMED/PAID order for a completed checkout session.

    Returns None when an order for ``stripe_session_id`` already exists.
    """
    repo = OrderRepository(session)
    if await repo.get_by(stripe_session_id=data["stripe_session_id"]) is not None:
        logger.info("Order for checkout session %s already recorded", data["stripe_session_id"])
        return None

    now = utcnow()
    order = Order(
        **data,
        order_number=await unique_order_number(repo),
        status=OrderStatus.CONFIRMED.value,
        payment_status=PaymentStatus.PAID.value,
        fulfillment_status=FulfillmentStatus.UNFULFILLED.value,
        payment_method=PaymentMethod.CARD,
        paid_at=now,
    )
    order.items = []
    session.add(order)
    await session.flush()
    if order.coupon_code:
        await coupons.record_usage(session, order.coupon_code, order_id=order.id, email=order.email)
    logger.info("Order %s created for checkout session %s", order.order_number, order.stripe_session_id)
    return order


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

def _percent_change(current, previous) -> int:
    if not previous:
        return 0
    return round((float(current) - float(previous)) / float(previous) * 100)


async def dashboard_stats(session: AsyncSession, now: datetime | None = None) -> dict:
    now = now or utcnow()
    start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_month = start_of_today.replace(day=1)
    start_of_last_month = (start_of_month - timedelta(days=1)).replace(day=1)

    repo = OrderRepository(session)
    this_month = (Order.created_at >= start_of_month,)
    last_month = (Order.created_at >= start_of_last_month, Order.created_at < start_of_month)

    month_orders = await repo.count(*this_month)
    last_month_orders = await repo.count(*last_month)
    month_revenue = await repo.revenue(*this_month)
    last_month_revenue = await repo.revenue(*last_month)

    products = dict((await session.execute(
        select(Product.status, func.count()).group_by(Product.status)
    )).all())

    return {
        "stats": {
            "orders": {
                "total": await repo.count(),
                "pending": await repo.count(Order.status == OrderStatus.PENDING.value),
                "today": await repo.count(Order.created_at >= start_of_today),
                "month": month_orders,
                "change": _percent_change(month_orders, last_month_orders),
            },
            "revenue": {
                "total": money(await repo.revenue()),
                "month": money(month_revenue),
                "change": _percent_change(month_revenue, last_month_revenue),
            },
            "products": {
                "total": sum(products.values()),
                "active": products.get(ProductStatus.ACTIVE, 0),
                "lowStock": await InventoryRepository(session).count_low_stock(),
            },
        },
        "recentOrders": [
            {
                "id": str(order.id),
                "orderNumber": order.order_number,
                "customer": " ".join(
                    part for part in (order.shipping_first_name, order.shipping_last_name) if part
                ) or order.email,
                "total": money(order.total),
                "status": order.status,
                "itemCount": len(order.items),
                "createdAt": iso(order.created_at),
            }
            for order in await repo.recent()
        ],
    }
