"""Upsell links and product bundles."""

import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictError, NotFoundError, ValidationFailed
from core.models.base import to_decimal
from domains.catalog.models.db_models import Product
from domains.merchandising.models.db_models import BundleItem, ProductBundle, ProductUpsell, UpsellType
from patterns.repository import BaseRepository, as_uuid

logger = logging.getLogger(__name__)


class UpsellRepository(BaseRepository[ProductUpsell]):
    model = ProductUpsell

    async def search(self, product_id=None, upsell_type: str | None = None) -> list[ProductUpsell]:
        stmt = select(ProductUpsell).order_by(ProductUpsell.created_at.desc())
        if product_id is not None:
            stmt = stmt.where(or_(
                ProductUpsell.from_product_id == product_id,
                ProductUpsell.to_product_id == product_id,
            ))
        if upsell_type:
            stmt = stmt.where(ProductUpsell.type == upsell_type)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class BundleRepository(BaseRepository[ProductBundle]):
    model = ProductBundle

    async def search(self, bundle_id=None, product_id=None) -> list[ProductBundle]:
        stmt = select(ProductBundle).order_by(ProductBundle.created_at.desc())
        if bundle_id is not None:
            stmt = stmt.where(ProductBundle.id == bundle_id)
        if product_id is not None:
            stmt = stmt.where(ProductBundle.product_id == product_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


async def _product(session: AsyncSession, product_id) -> Product | None:
    product_uuid = as_uuid(product_id)
    return await session.get(Product, product_uuid) if product_uuid else None


# ---------------------------------------------------------------------------
# Upsells
# ---------------------------------------------------------------------------

async def list_upsells(session: AsyncSession, product_id: str | None = None, upsell_type: str | None = None):
    if product_id and as_uuid(product_id) is None:
        return []
    return await UpsellRepository(session).search(
        product_id=as_uuid(product_id) if product_id else None,
        upsell_type=upsell_type,
    )


async def get_upsell(session: AsyncSession, upsell_id: str) -> ProductUpsell:
    upsell = await UpsellRepository(session).get(upsell_id)
    if upsell is None:
        raise NotFoundError("Upsell not found")
    return upsell


async def create_upsell(session: AsyncSession, data: dict) -> ProductUpsell:
    from_id, to_id = data.get("from_product_id"), data.get("to_product_id")
    if not from_id or not to_id:
        raise ValidationFailed("fromProductId and toProductId are required")
    if from_id == to_id:
        raise ValidationFailed("A product cannot be an upsell of itself")

    upsell_type = data.get("type") or UpsellType.UPSELL
    if upsell_type not in UpsellType.ALL:
        raise ValidationFailed("Invalid upsell type")

    from_product = await _product(session, from_id)
    to_product = await _product(session, to_id)
    if from_product is None or to_product is None:
        raise NotFoundError("One or both products not found")

    repo = UpsellRepository(session)
    existing = await repo.get_by(
        from_product_id=from_product.id,
        to_product_id=to_product.id,
        type=upsell_type,
    )
    if existing is not None:
        raise ConflictError("This upsell relationship already exists")

    upsell = await repo.create({
        "from_product_id": from_product.id,
        "to_product_id": to_product.id,
        "type": upsell_type,
        "discount": to_decimal(data.get("discount")) or None,
        "message": data.get("message") or None,
        "position": data.get("position") or 0,
        "is_active": True if data.get("is_active") is None else data["is_active"],
    })
    return await repo.get(upsell.id)


async def update_upsell(session: AsyncSession, upsell_id: str, data: dict) -> ProductUpsell:
    repo = UpsellRepository(session)
    upsell = await get_upsell(session, upsell_id)
    if data.get("type") is not None and data["type"] not in UpsellType.ALL:
        raise ValidationFailed("Invalid upsell type")

    changes = {}
    for field in ("type", "message", "position", "is_active"):
        if field in data and (data[field] is not None or field == "message"):
            changes[field] = data[field]
    if "discount" in data:
        changes["discount"] = to_decimal(data["discount"])
    await repo.update(upsell, changes)
    return await repo.get(upsell.id)


async def delete_upsell(session: AsyncSession, upsell_id: str) -> None:
    upsell = await get_upsell(session, upsell_id)
    await UpsellRepository(session).delete(upsell)


# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------

async def list_bundles(session: AsyncSession, bundle_id: str | None = None, product_id: str | None = None):
    if (bundle_id and as_uuid(bundle_id) is None) or (product_id and as_uuid(product_id) is None):
        return []
    return await BundleRepository(session).search(
        bundle_id=as_uuid(bundle_id) if bundle_id else None,
        product_id=as_uuid(product_id) if product_id else None,
    )


async def get_bundle(session: AsyncSession, bundle_id: str) -> ProductBundle:
    bundle = await BundleRepository(session).get(bundle_id)
    if bundle is None:
        raise NotFoundError("Bundle not found")
    return bundle


async def _bundle_items(session: AsyncSession, items: list[dict]) -> list[BundleItem]:
    """Item rows in the given order; individual price defaults to the product price."""
    rows = []
    for position, item in enumerate(items):
        product = await _product(session, item.get("product_id"))
        if product is None:
            raise NotFoundError("Bundle item product not found")
        price = to_decimal(item.get("individual_price"))
        rows.append(BundleItem(
            product_id=product.id,
            quantity=item.get("quantity") or 1,
            individual_price=price if price is not None else product.price,
            position=position,
        ))
    return rows


async def create_bundle(session: AsyncSession, data: dict) -> ProductBundle:
    if not data.get("product_id"):
        raise ValidationFailed("productId is required")
    items = data.get("items") or []
    if not items:
        raise ValidationFailed("items array is required and must not be empty")

    product = await _product(session, data["product_id"])
    if product is None:
        raise NotFoundError("Product not found")

    repo = BundleRepository(session)
    if await repo.get_by(product_id=product.id) is not None:
        raise ConflictError("Bundle already exists for this product", status_code=409)

    bundle = ProductBundle(
        product_id=product.id,
        savings_amount=to_decimal(data.get("savings_amount")),
        savings_percent=to_decimal(data.get("savings_percent")),
    )
    bundle.items = await _bundle_items(session, items)
    session.add(bundle)
    await session.flush()
    logger.info("Created bundle for product %s with %d items", product.sku, len(bundle.items))
    return await repo.get(bundle.id)


async def update_bundle(session: AsyncSession, bundle_id: str, data: dict) -> ProductBundle:
    """Savings fields are updated when present; ``items`` replaces all items."""
    repo = BundleRepository(session)
    bundle = await get_bundle(session, bundle_id)

    changes = {}
    for field in ("savings_amount", "savings_percent"):
        if field in data:
            changes[field] = to_decimal(data[field])
    if data.get("items") is not None:
        bundle.items = await _bundle_items(session, data["items"])
    await repo.update(bundle, changes)
    return await repo.get(bundle.id)


async def delete_bundle(session: AsyncSession, bundle_id: str) -> None:
    bundle = await get_bundle(session, bundle_id)
    await BundleRepository(session).delete(bundle)
    logger.info("Deleted bundle %s", bundle_id)
