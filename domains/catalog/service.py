"""Catalog services: categories and products.

Product writes push the new state to Stripe after the row is flushed;
a failed sync is logged and never fails the write.
"""

import logging
import time

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictError, NotFoundError, ValidationFailed
from core.models.base import to_decimal, utcnow
from domains.catalog import stripe_sync
from domains.catalog.models.db_models import Category, Product, ProductImage, ProductStatus
from domains.catalog.utils import generate_sku, slugify
from domains.merchandising.models.db_models import ProductBundle, ProductUpsell
from domains.orders.models.db_models import OrderItem
from patterns.repository import BaseRepository, as_uuid, pagination

logger = logging.getLogger(__name__)

_SORTABLE = {
    "createdAt": Product.created_at,
    "updatedAt": Product.updated_at,
    "name": Product.name,
    "price": Product.price,
    "sku": Product.sku,
}
_MONEY_FIELDS = ("price", "compare_at_price", "cost_price")


class CategoryRepository(BaseRepository[Category]):
    model = Category

    async def list_all(self, active_only: bool = False) -> list[Category]:
        stmt = select(Category).order_by(Category.position, Category.name)
        if active_only:
            stmt = stmt.where(Category.is_active.is_(True))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def product_counts(self) -> dict:
        result = await self.session.execute(
            select(Product.category_id, func.count()).group_by(Product.category_id)
        )
        return dict(result.all())


class ProductRepository(BaseRepository[Product]):
    model = Product

    async def search(
        self,
        search: str | None = None,
        status: str | None = None,
        category_id=None,
        category_slug: str | None = None,
        slug: str | None = None,
        featured: bool = False,
        new_arrival: bool = False,
        best_seller: bool = False,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Product], int]:
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(
                Product.name.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.description.ilike(pattern),
            ))
        if status:
            conditions.append(Product.status == status)
        if slug:
            conditions.append(Product.slug == slug)
        if category_id is not None:
            conditions.append(Product.category_id == category_id)
        if category_slug:
            conditions.append(Product.category.has(Category.slug == category_slug))
        if featured:
            conditions.append(Product.featured.is_(True))
        if new_arrival:
            conditions.append(Product.new_arrival.is_(True))
        if best_seller:
            conditions.append(Product.best_seller.is_(True))

        column = _SORTABLE.get(sort_by, Product.created_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()

        stmt = select(Product).where(*conditions).order_by(ordering)
        stmt = stmt.offset((page - 1) * limit).limit(limit)
        count_stmt = select(func.count()).select_from(Product).where(*conditions)

        products = list((await self.session.execute(stmt)).scalars().all())
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return products, total

    async def slug_taken(self, slug: str, exclude_id=None) -> bool:
        stmt = select(Product.id).where(Product.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(Product.id != exclude_id)
        return (await self.session.execute(stmt.limit(1))).first() is not None

    async def sku_taken(self, sku: str) -> bool:
        stmt = select(Product.id).where(Product.sku == sku).limit(1)
        return (await self.session.execute(stmt)).first() is not None

    async def order_item_count(self, product_id) -> int:
        stmt = select(func.count()).select_from(OrderItem).where(OrderItem.product_id == product_id)
        return (await self.session.execute(stmt)).scalar() or 0

    async def count_by_status(self) -> dict[str, int]:
        result = await self.session.execute(select(Product.status, func.count()).group_by(Product.status))
        return dict(result.all())


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

async def list_categories(session: AsyncSession, active_only: bool = False) -> list[dict]:
    repo = CategoryRepository(session)
    counts = await repo.product_counts()
    return [
        {**category.to_dict(), "_count": {"products": counts.get(category.id, 0)}}
        for category in await repo.list_all(active_only=active_only)
    ]


async def get_category(session: AsyncSession, category_id: str) -> Category:
    category = await CategoryRepository(session).get(category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


async def _unique_category_slug(repo: CategoryRepository, name: str, exclude_id=None) -> str:
    slug = slugify(name)
    if not slug:
        raise ValidationFailed("Name must contain letters or digits")
    existing = await repo.get_by(slug=slug)
    if existing is not None and existing.id != exclude_id:
        raise ConflictError("A category with this name already exists")
    return slug


async def create_category(session: AsyncSession, data: dict) -> Category:
    if not data.get("name"):
        raise ValidationFailed("Name is required")
    repo = CategoryRepository(session)
    data["slug"] = await _unique_category_slug(repo, data["name"])
    if data.get("parent_id"):
        data["parent_id"] = (await get_category(session, data["parent_id"])).id
    return await repo.create(data)


async def update_category(session: AsyncSession, category_id: str, data: dict) -> Category:
    repo = CategoryRepository(session)
    category = await get_category(session, category_id)
    if data.get("name") and data["name"] != category.name:
        data["slug"] = await _unique_category_slug(repo, data["name"], exclude_id=category.id)
    if data.get("parent_id"):
        parent = await get_category(session, data["parent_id"])
        if parent.id == category.id:
            raise ValidationFailed("A category cannot be its own parent")
        data["parent_id"] = parent.id
    return await repo.update(category, data)


async def delete_category(session: AsyncSession, category_id: str) -> None:
    repo = CategoryRepository(session)
    category = await get_category(session, category_id)
    in_use = await session.execute(select(func.count()).select_from(Product).where(Product.category_id == category.id))
    if (in_use.scalar() or 0) > 0:
        raise ValidationFailed("Cannot delete a category that still has products")
    await repo.delete(category)


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

async def list_products(session: AsyncSession, page: int = 1, limit: int = 20, **filters) -> dict:
    category_id = filters.pop("category_id", None)
    if category_id:
        filters["category_id"] = as_uuid(category_id)
    products, total = await ProductRepository(session).search(page=page, limit=limit, **filters)
    return {
        "products": [product.to_dict() for product in products],
        "pagination": pagination(page, limit, total),
    }


async def get_product(session: AsyncSession, product_id: str) -> Product:
    product = await ProductRepository(session).get(product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


async def get_product_detail(session: AsyncSession, product_id: str) -> dict:
    """Product with its bundle and active upsell links."""
    product = await get_product(session, product_id)
    bundle = (await session.execute(
        select(ProductBundle).where(ProductBundle.product_id == product.id)
    )).scalar_one_or_none()
    upsells = (await session.execute(
        select(ProductUpsell)
        .where(ProductUpsell.from_product_id == product.id, ProductUpsell.is_active.is_(True))
        .order_by(ProductUpsell.position)
    )).scalars().all()
    return {
        **product.to_dict(),
        "bundle": bundle.to_dict() if bundle else None,
        "upsells": [upsell.to_dict() for upsell in upsells],
    }


def _image_rows(images: list[dict], product_name: str) -> list[ProductImage]:
    return [
        ProductImage(
            url=image["url"],
            alt_text=image.get("alt_text") or product_name,
            position=index,
            is_primary=index == 0,
        )
        for index, image in enumerate(images)
        if image.get("url")
    ]


async def create_product(session: AsyncSession, data: dict) -> Product:
    if not data.get("name") or data.get("price") is None:
        raise ValidationFailed("Name and price are required")
    status = data.pop("status", None) or ProductStatus.DRAFT
    if status not in ProductStatus.ALL:
        raise ValidationFailed("Invalid product status")

    repo = ProductRepository(session)
    if data.get("category_id"):
        data["category_id"] = (await get_category(session, data["category_id"])).id

    slug = slugify(data["name"])
    if not slug or await repo.slug_taken(slug):
        slug = f"{slug or 'product'}-{int(time.time() * 1000)}"
    sku = generate_sku("PRD")
    if await repo.sku_taken(sku):
        sku = generate_sku("PRD")

    images = data.pop("images", None) or []
    for field in _MONEY_FIELDS:
        data[field] = to_decimal(data.get(field))

    product = Product(
        **data,
        slug=slug,
        sku=sku,
        status=status,
        published_at=utcnow() if status == ProductStatus.ACTIVE else None,
    )
    product.images = _image_rows(images, data["name"])
    session.add(product)
    await session.flush()
    product = await repo.get(product.id)

    await stripe_sync.sync_product(product)
    await session.flush()
    logger.info("Created product %s (%s)", product.sku, product.status)
    return product


async def update_product(session: AsyncSession, product_id: str, data: dict) -> Product:
    repo = ProductRepository(session)
    product = await get_product(session, product_id)

    for required in ("name", "price", "status"):
        if required in data and data[required] is None:
            del data[required]
    if "status" in data and data["status"] not in ProductStatus.ALL:
        raise ValidationFailed("Invalid product status")
    if data.get("name") and data["name"] != product.name:
        slug = slugify(data["name"]) or "product"
        if await repo.slug_taken(slug, exclude_id=product.id):
            slug = f"{slug}-{int(time.time() * 1000)}"
        data["slug"] = slug
    if data.get("category_id"):
        data["category_id"] = (await get_category(session, data["category_id"])).id
    for field in _MONEY_FIELDS:
        if field in data:
            data[field] = to_decimal(data[field])

    new_status = data.get("status")
    if new_status == ProductStatus.ACTIVE and product.status != ProductStatus.ACTIVE:
        data["published_at"] = utcnow()
    elif new_status and new_status != ProductStatus.ACTIVE:
        data["published_at"] = None

    images = data.pop("images", None)
    if images is not None:
        product.images = _image_rows(images, data.get("name") or product.name)

    await repo.update(product, data)
    product = await repo.get(product.id)

    await stripe_sync.sync_product(product)
    await session.flush()
    return product


async def delete_product(session: AsyncSession, product_id: str) -> dict:
    """Archive products that appear on orders, hard-delete the rest."""
    repo = ProductRepository(session)
    product = await get_product(session, product_id)

    if await repo.order_item_count(product.id) > 0:
        product.status = ProductStatus.ARCHIVED
        product.published_at = None
        await session.flush()
        await stripe_sync.sync_product(product)
        logger.info("Archived product %s (has orders)", product.sku)
        return {"success": True, "archived": True}

    stripe_product_id = product.stripe_product_id
    await repo.delete(product)
    if stripe_product_id:
        await stripe_sync.archive_stripe_product(stripe_product_id)
    logger.info("Deleted product %s", product.sku)
    return {"success": True, "archived": False}
