"""Regional pricing.

A buyer's country resolves to a pricing region: the first region (by
sort order) listing the country, else the default region. A product's
price in that region is its override row when one exists, else the base
price.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictError, NotFoundError, ValidationFailed
from core.models.base import money, to_decimal
from domains.catalog.models.db_models import Product
from domains.pricing.currencies import CURRENCIES, require_currency
from domains.pricing.models.db_models import PricingRegion, ProductRegionPrice
from patterns.domain_config import config
from patterns.repository import BaseRepository, as_uuid

logger = logging.getLogger(__name__)


DEFAULT_REGIONS = (
    {"code": "US", "name": "United States", "currency": "USD", "countries": ["US"], "sort_order": 1},
    {"code": "UK", "name": "United Kingdom", "currency": "GBP", "countries": ["GB"], "sort_order": 2},
    {
        "code": "EU",
        "name": "Europe",
        "currency": "EUR",
        "countries": [
            "DE", "FR", "IT", "ES", "NL", "BE", "AT", "PT", "IE", "FI",
            "SE", "DK", "PL", "CZ", "GR", "HU", "RO", "BG", "HR", "SK",
            "SI", "EE", "LV", "LT", "LU", "MT", "CY",
        ],
        "sort_order": 3,
    },
    {"code": "CA", "name": "Canada", "currency": "CAD", "countries": ["CA"], "sort_order": 4},
    {"code": "AU", "name": "Australia & New Zealand", "currency": "AUD", "countries": ["AU", "NZ"], "sort_order": 5},
    {"code": "CH", "name": "Switzerland & Liechtenstein", "currency": "CHF", "countries": ["CH", "LI"], "sort_order": 6},
    # Empty country list: catches everything the others do not
    {"code": "ROW", "name": "Rest of World", "currency": "USD", "countries": [], "is_default": True, "sort_order": 99},
)


@dataclass(frozen=True)
class ResolvedPrice:
    price: Decimal
    compare_at_price: Decimal | None
    currency: str
    region_code: str

    def to_dict(self) -> dict:
        return {
            "price": money(self.price),
            "compareAtPrice": money(self.compare_at_price),
            "currency": self.currency,
            "regionCode": self.region_code,
        }


class PricingRegionRepository(BaseRepository[PricingRegion]):
    model = PricingRegion

    async def list_ordered(self) -> list[PricingRegion]:
        result = await self.session.execute(
            select(PricingRegion).order_by(PricingRegion.sort_order, PricingRegion.name)
        )
        return list(result.scalars().all())

    async def get_default(self) -> PricingRegion | None:
        result = await self.session.execute(
            select(PricingRegion).where(PricingRegion.is_default.is_(True)).limit(1)
        )
        return result.scalar_one_or_none()

    async def clear_default(self) -> None:
        await self.session.execute(
            update(PricingRegion).where(PricingRegion.is_default.is_(True)).values(is_default=False)
        )

    async def price_counts(self) -> dict:
        result = await self.session.execute(
            select(ProductRegionPrice.region_id, func.count()).group_by(ProductRegionPrice.region_id)
        )
        return dict(result.all())


class RegionPriceRepository(BaseRepository[ProductRegionPrice]):
    model = ProductRegionPrice

    async def find(self, product_id, region_id) -> ProductRegionPrice | None:
        result = await self.session.execute(
            select(ProductRegionPrice).where(
                ProductRegionPrice.product_id == product_id,
                ProductRegionPrice.region_id == region_id,
            )
        )
        return result.scalar_one_or_none()

    async def for_region(self, region_id, product_ids: list) -> dict:
        """Override rows for ``product_ids`` in one region, keyed by product id."""
        if not product_ids:
            return {}
        result = await self.session.execute(
            select(ProductRegionPrice).where(
                ProductRegionPrice.region_id == region_id,
                ProductRegionPrice.product_id.in_(product_ids),
            )
        )
        return {row.product_id: row for row in result.scalars().all()}

    async def for_product(self, product_id) -> dict:
        result = await self.session.execute(
            select(ProductRegionPrice).where(ProductRegionPrice.product_id == product_id)
        )
        return {row.region_id: row for row in result.scalars().all()}


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def match_region(regions: list[PricingRegion], country_code: str | None) -> PricingRegion | None:
    """Pure lookup over regions already sorted by sort_order."""
    default = next((r for r in regions if r.is_default), None)
    if not country_code:
        return default
    code = country_code.strip().upper()
    for region in regions:
        if region.covers(code):
            return region
    return default


async def resolve_region(session: AsyncSession, country_code: str | None) -> PricingRegion | None:
    regions = await PricingRegionRepository(session).list_ordered()
    return match_region(regions, country_code)


def resolve_price(
    product: Product,
    region: PricingRegion | None,
    regional_price: ProductRegionPrice | None = None,
) -> ResolvedPrice:
    """Regional override when present, else the product's base prices."""
    currency = region.currency if region else config.pricing.fallback_currency
    region_code = region.code if region else config.pricing.fallback_region_code
    if regional_price is not None:
        return ResolvedPrice(
            price=regional_price.price,
            compare_at_price=regional_price.compare_at_price,
            currency=currency,
            region_code=region_code,
        )
    return ResolvedPrice(
        price=product.price,
        compare_at_price=product.compare_at_price,
        currency=currency,
        region_code=region_code,
    )


async def price_products(
    session: AsyncSession,
    products: list[Product],
    region: PricingRegion | None,
) -> dict:
    """Resolve prices for many products with one override query."""
    overrides = {}
    if region is not None:
        overrides = await RegionPriceRepository(session).for_region(region.id, [p.id for p in products])
    return {p.id: resolve_price(p, region, overrides.get(p.id)) for p in products}


# ---------------------------------------------------------------------------
# Region administration
# ---------------------------------------------------------------------------

async def list_regions(session: AsyncSession) -> list[dict]:
    repo = PricingRegionRepository(session)
    counts = await repo.price_counts()
    return [
        {**region.to_dict(), "_count": {"prices": counts.get(region.id, 0)}}
        for region in await repo.list_ordered()
    ]


async def get_region(session: AsyncSession, region_id: str) -> PricingRegion:
    region = await PricingRegionRepository(session).get(region_id)
    if region is None:
        raise NotFoundError("Pricing region not found")
    return region


def list_currencies() -> list[dict]:
    return [
        {"code": c.code, "name": c.name, "symbol": c.symbol, "locale": c.locale}
        for c in CURRENCIES
    ]


def _normalise_region(data: dict) -> dict:
    if data.get("code"):
        data["code"] = data["code"].strip().upper()
    if data.get("currency"):
        data["currency"] = require_currency(data["currency"])
    if data.get("countries") is not None:
        data["countries"] = [c.strip().upper() for c in data["countries"] if c and c.strip()]
    return data


async def create_region(session: AsyncSession, data: dict) -> PricingRegion:
    if not data.get("code") or not data.get("name") or not data.get("currency"):
        raise ValidationFailed("Code, name, and currency are required")
    data = _normalise_region(data)
    repo = PricingRegionRepository(session)
    if await repo.get_by(code=data["code"]) is not None:
        raise ConflictError("A region with this code already exists")
    if data.get("is_default"):
        await repo.clear_default()
    data["countries"] = data.get("countries") or []
    region = await repo.create(data)
    logger.info("Created pricing region %s (%s)", region.code, region.currency)
    return region


async def update_region(session: AsyncSession, region_id: str, data: dict) -> PricingRegion:
    repo = PricingRegionRepository(session)
    region = await get_region(session, region_id)
    data = _normalise_region({k: v for k, v in data.items() if v is not None or k == "countries"})
    if data.get("countries") is None:
        data.pop("countries", None)

    if data.get("code") and data["code"] != region.code:
        clash = await repo.get_by(code=data["code"])
        if clash is not None and clash.id != region.id:
            raise ConflictError("A region with this code already exists")
    if data.get("is_default") and not region.is_default:
        await repo.clear_default()
    return await repo.update(region, data)


async def delete_region(session: AsyncSession, region_id: str) -> None:
    region = await get_region(session, region_id)
    if region.is_default:
        raise ValidationFailed("Cannot delete the default pricing region")
    await session.execute(delete(ProductRegionPrice).where(ProductRegionPrice.region_id == region.id))
    await PricingRegionRepository(session).delete(region)
    logger.info("Deleted pricing region %s", region.code)


async def seed_default_regions(session: AsyncSession) -> int:
    """Create any missing default regions. Returns how many were created."""
    repo = PricingRegionRepository(session)
    created = 0
    for region in DEFAULT_REGIONS:
        if await repo.get_by(code=region["code"]) is None:
            await repo.create({"is_default": False, **region, "countries": list(region["countries"])})
            created += 1
    if created:
        logger.info("Seeded %d pricing regions", created)
    return created


# ---------------------------------------------------------------------------
# Product regional prices
# ---------------------------------------------------------------------------

async def _get_product(session: AsyncSession, product_id: str) -> Product:
    product_uuid = as_uuid(product_id)
    product = await session.get(Product, product_uuid) if product_uuid else None
    if product is None:
        raise NotFoundError("Product not found")
    return product


async def get_product_prices(session: AsyncSession, product_id: str) -> dict:
    product = await _get_product(session, product_id)
    overrides = await RegionPriceRepository(session).for_product(product.id)
    regions = await PricingRegionRepository(session).list_ordered()
    return {
        "product": {
            "id": str(product.id),
            "name": product.name,
            "basePrice": money(product.price),
            "baseCompareAtPrice": money(product.compare_at_price),
        },
        "regionalPrices": [
            {
                "regionId": str(region.id),
                "regionCode": region.code,
                "regionName": region.name,
                "currency": region.currency,
                "isDefault": region.is_default,
                "price": money(overrides[region.id].price) if region.id in overrides else None,
                "compareAtPrice": (
                    money(overrides[region.id].compare_at_price) if region.id in overrides else None
                ),
            }
            for region in regions
        ],
    }


async def set_product_prices(session: AsyncSession, product_id: str, entries: list[dict]) -> list[dict]:
    """Bulk upsert/delete of overrides; per-entry failures are reported, not raised.

    ``price: None`` removes the override so the base price applies again.
    """
    product = await _get_product(session, product_id)

    regions = PricingRegionRepository(session)
    prices = RegionPriceRepository(session)
    results = []
    for entry in entries:
        region_id = entry.get("region_id")
        region = await regions.get(region_id) if region_id else None
        if region is None:
            results.append({"regionId": region_id, "success": False, "error": "Region not found"})
            continue

        existing = await prices.find(product.id, region.id)
        if entry.get("price") is None:
            if existing is not None:
                await prices.delete(existing)
            results.append({"regionId": str(region.id), "success": True, "action": "deleted"})
            continue

        values = {
            "price": to_decimal(entry["price"]),
            "compare_at_price": to_decimal(entry.get("compare_at_price")),
        }
        if existing is None:
            await prices.create({"product_id": product.id, "region_id": region.id, **values})
        else:
            await prices.update(existing, values)
        results.append({"regionId": str(region.id), "success": True, "action": "updated"})
    return results
