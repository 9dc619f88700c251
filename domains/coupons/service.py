"""Coupon administration, validity queries and redemption."""

import logging
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictError, NotFoundError, ValidationFailed
from core.models.base import iso, money, to_decimal, utcnow
from domains.coupons.models.db_models import Coupon, CouponType, CouponUsage
from patterns.domain_config import config
from patterns.repository import BaseRepository, pagination
from patterns.rules_engine import RuleSetResult, check_coupon_usage, check_coupon_window, evaluate_rules

logger = logging.getLogger(__name__)

_CLEARABLE = ("description", "min_purchase", "max_discount", "usage_limit", "starts_at", "expires_at")
_MONEY_FIELDS = ("value", "min_purchase", "max_discount")


class CouponRepository(BaseRepository[Coupon]):
    model = Coupon

    async def search(
        self,
        search: str | None = None,
        is_active: bool | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Coupon], int]:
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Coupon.code.ilike(pattern), Coupon.description.ilike(pattern)))
        if is_active is not None:
            conditions.append(Coupon.is_active.is_(is_active))

        stmt = (
            select(Coupon)
            .where(*conditions)
            .order_by(Coupon.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(Coupon).where(*conditions)
        coupons = list((await self.session.execute(stmt)).scalars().all())
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return coupons, total

    async def usage_counts(self, coupon_ids: list) -> dict:
        if not coupon_ids:
            return {}
        result = await self.session.execute(
            select(CouponUsage.coupon_id, func.count())
            .where(CouponUsage.coupon_id.in_(coupon_ids))
            .group_by(CouponUsage.coupon_id)
        )
        return dict(result.all())

    async def recent_usages(self, coupon_id, limit: int = 10) -> list[CouponUsage]:
        result = await self.session.execute(
            select(CouponUsage)
            .where(CouponUsage.coupon_id == coupon_id)
            .order_by(CouponUsage.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def valid(self, now: datetime, code: str | None = None, coupon_type: str | None = None) -> list[Coupon]:
        """Active coupons inside their start/expiry window, highest value first."""
        stmt = select(Coupon).where(
            Coupon.is_active.is_(True),
            or_(Coupon.starts_at.is_(None), Coupon.starts_at <= now),
            or_(Coupon.expires_at.is_(None), Coupon.expires_at > now),
        )
        if code:
            stmt = stmt.where(Coupon.code == code.upper())
        if coupon_type:
            stmt = stmt.where(Coupon.type == coupon_type)
        result = await self.session.execute(stmt.order_by(Coupon.value.desc()))
        return list(result.scalars().all())


# ---------------------------------------------------------------------------
# External shape
# ---------------------------------------------------------------------------

def _valid_for(products, categories) -> list[str]:
    valid_for = [str(p) for p in products or []] + [str(c) for c in categories or []]
    return valid_for or ["all"]


def transform_coupon(coupon: Coupon) -> dict:
    """Coupon as the storefront promo widget expects it."""
    return {
        "id": str(coupon.id),
        "code": coupon.code,
        "description": coupon.description,
        "discount": money(coupon.value) if coupon.type == CouponType.PERCENTAGE else 0,
        "discountType": coupon.type,
        "discountValue": money(coupon.value),
        "maxSavings": money(coupon.max_discount),
        "minPurchase": money(coupon.min_purchase),
        "expiresAt": iso(coupon.expires_at),
        "validFor": _valid_for(coupon.applicable_products, coupon.applicable_categories),
    }


# ---------------------------------------------------------------------------
# Validity queries
# ---------------------------------------------------------------------------

def coupon_rules(coupon: Coupon, now: datetime) -> RuleSetResult:
    """Window and usage-limit rules for one coupon."""
    view = coupon.rule_view()
    return evaluate_rules(check_coupon_window(view, now), check_coupon_usage(view))


async def find_valid_coupon(session: AsyncSession, code: str) -> Coupon:
    """The coupon for ``code`` if it is active, started and unexpired.

    Raises NotFoundError otherwise, and ValidationFailed when its usage
    limit is used up.
    """
    coupon = await CouponRepository(session).get_by(code=code.strip().upper())
    if coupon is None:
        raise NotFoundError("Coupon not found or expired")
    result = coupon_rules(coupon, utcnow())
    failed = {rule.rule_name: rule for rule in result.failed}
    if "coupon_window" in failed:
        raise NotFoundError("Coupon not found or expired")
    if "coupon_usage" in failed:
        raise ValidationFailed(failed["coupon_usage"].message)
    return coupon


async def list_valid_coupons(session: AsyncSession) -> list[Coupon]:
    return await CouponRepository(session).valid(utcnow())


async def best_percentage_coupon(session: AsyncSession) -> Coupon | None:
    coupons = await CouponRepository(session).valid(utcnow(), coupon_type=CouponType.PERCENTAGE)
    return coupons[0] if coupons else None


async def checkout_coupon(session: AsyncSession, code: str | None) -> Coupon | None:
    """An active, unexpired PERCENTAGE coupon for checkout, else None."""
    if not code:
        return None
    coupon = await CouponRepository(session).get_by(code=code.strip().upper())
    if coupon is None or coupon.type != CouponType.PERCENTAGE:
        return None
    return coupon if check_coupon_window(coupon.rule_view(), utcnow()).passed else None


async def record_usage(session: AsyncSession, code: str, order_id=None, email: str | None = None) -> CouponUsage | None:
    """Write a redemption row and bump the coupon's usage count."""
    coupon = await CouponRepository(session).get_by(code=code.upper())
    if coupon is None:
        logger.warning("Redeemed coupon %s no longer exists", code)
        return None
    usage = CouponUsage(coupon_id=coupon.id, order_id=order_id, email=email)
    session.add(usage)
    coupon.usage_count = (coupon.usage_count or 0) + 1
    await session.flush()
    logger.info("Coupon %s redeemed (%d uses)", coupon.code, coupon.usage_count)
    return usage


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

async def list_coupons(
    session: AsyncSession,
    search: str | None = None,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    repo = CouponRepository(session)
    coupons, total = await repo.search(search=search, is_active=is_active, page=page, limit=limit)
    counts = await repo.usage_counts([c.id for c in coupons])
    return {
        "coupons": [
            {**coupon.to_dict(), "_count": {"usages": counts.get(coupon.id, 0)}}
            for coupon in coupons
        ],
        "pagination": pagination(page, limit, total),
    }


async def get_coupon(session: AsyncSession, coupon_id: str) -> Coupon:
    coupon = await CouponRepository(session).get(coupon_id)
    if coupon is None:
        raise NotFoundError("Coupon not found")
    return coupon


async def get_coupon_detail(session: AsyncSession, coupon_id: str) -> dict:
    repo = CouponRepository(session)
    coupon = await get_coupon(session, coupon_id)
    usages = await repo.recent_usages(coupon.id)
    counts = await repo.usage_counts([coupon.id])
    return {
        **coupon.to_dict(),
        "usages": [usage.to_dict() for usage in usages],
        "_count": {"usages": counts.get(coupon.id, 0)},
    }


def _check_type(coupon_type: str) -> None:
    if coupon_type not in CouponType.ALL:
        raise ValidationFailed("Invalid coupon type")


async def create_coupon(session: AsyncSession, data: dict) -> Coupon:
    if not data.get("code") or not data.get("type") or data.get("value") is None:
        raise ValidationFailed("Code, discount type, and discount value are required")
    _check_type(data["type"])

    repo = CouponRepository(session)
    data["code"] = data["code"].strip().upper()
    if await repo.get_by(code=data["code"]) is not None:
        raise ConflictError("A coupon with this code already exists")

    data["value"] = to_decimal(data["value"])
    data["min_purchase"] = to_decimal(data.get("min_purchase")) or None
    data["max_discount"] = to_decimal(data.get("max_discount")) or None
    data["usage_limit"] = data.get("usage_limit") or None
    data["usage_limit_per_user"] = data.get("usage_limit_per_user") or config.coupons.default_usage_limit_per_user
    data["applicable_products"] = data.get("applicable_products") or []
    data["applicable_categories"] = data.get("applicable_categories") or []
    if data.get("is_active") is None:
        data["is_active"] = True

    coupon = await repo.create(data)
    logger.info("Created coupon %s (%s %s)", coupon.code, coupon.type, coupon.value)
    return coupon


async def update_coupon(session: AsyncSession, coupon_id: str, data: dict) -> Coupon:
    """Partial update. Explicit nulls clear the optional limits and dates."""
    repo = CouponRepository(session)
    coupon = await get_coupon(session, coupon_id)

    changes = {k: v for k, v in data.items() if v is not None or k in _CLEARABLE}
    if changes.get("type"):
        _check_type(changes["type"])
    if changes.get("code"):
        changes["code"] = changes["code"].strip().upper()
        if changes["code"] != coupon.code and await repo.get_by(code=changes["code"]) is not None:
            raise ConflictError("A coupon with this code already exists")
    for field in _MONEY_FIELDS:
        if field in changes:
            changes[field] = to_decimal(changes[field])
    return await repo.update(coupon, changes)


async def delete_coupon(session: AsyncSession, coupon_id: str) -> dict:
    """Delete, or only deactivate a coupon that has already been redeemed."""
    repo = CouponRepository(session)
    coupon = await get_coupon(session, coupon_id)
    counts = await repo.usage_counts([coupon.id])
    if counts.get(coupon.id, 0) > 0:
        await repo.update(coupon, {"is_active": False})
        return {"success": True, "deactivated": True, "message": "Coupon deactivated (already used)"}
    await repo.delete(coupon)
    return {"success": True, "deactivated": False, "message": "Coupon deleted"}
