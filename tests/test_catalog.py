"""Test categories, products and their admin endpoints."""
import pytest

from core.errors import ConflictError, NotFoundError, ValidationFailed
from domains.catalog.service import (
    create_category,
    create_product,
    delete_category,
    delete_product,
    get_product,
    list_products,
    update_product,
)
from domains.catalog.utils import generate_sku, slugify
from domains.orders.service import create_order


def test_slugify():
    assert slugify("  Caftan & Belt ") == "caftan-belt"
    assert slugify("---") == ""


def test_generate_sku_prefix():
    sku = generate_sku("PRD")
    assert sku.startswith("PRD-")
    assert sku != generate_sku("PRD")


@pytest.mark.asyncio
async def test_create_product_sets_slug_sku_and_publish_date(session):
    product = await create_product(session, {
        "name": "Leather Babouche",
        "price": 39.5,
        "status": "ACTIVE",
        "images": [{"url": "https://cdn.example.com/a.jpg"}, {"url": "https://cdn.example.com/b.jpg"}],
    })

    assert product.slug == "leather-babouche"
    assert product.sku.startswith("PRD-")
    assert product.published_at is not None
    assert product.stripe_product_id is None
    assert [image.is_primary for image in product.images] == [True, False]
    assert product.images[0].alt_text == "Leather Babouche"


@pytest.mark.asyncio
async def test_duplicate_name_gets_unique_slug(session):
    first = await create_product(session, {"name": "Tote Bag", "price": 20})
    second = await create_product(session, {"name": "Tote Bag", "price": 25})
    assert first.slug == "tote-bag"
    assert second.slug.startswith("tote-bag-")
    assert first.status == "DRAFT"


@pytest.mark.asyncio
async def test_create_product_validation(session):
    with pytest.raises(ValidationFailed, match="Name and price are required"):
        await create_product(session, {"name": "No price"})
    with pytest.raises(ValidationFailed, match="Invalid product status"):
        await create_product(session, {"name": "Odd", "price": 1, "status": "SOMETHING"})
    with pytest.raises(NotFoundError, match="Category not found"):
        await create_product(session, {"name": "Lost", "price": 1, "category_id": "missing"})


@pytest.mark.asyncio
async def test_update_product_status_controls_publish_date(session, make_product):
    product = await make_product(status="DRAFT")
    assert product.published_at is None

    product = await update_product(session, str(product.id), {"status": "ACTIVE", "name": "Renamed Shirt"})
    assert product.published_at is not None
    assert product.slug == "renamed-shirt"

    product = await update_product(session, str(product.id), {"status": "ARCHIVED", "price": None})
    assert product.published_at is None
    assert float(product.price) == 49.9


@pytest.mark.asyncio
async def test_delete_product_hard_deletes_without_orders(session, make_product):
    product = await make_product()
    assert await delete_product(session, str(product.id)) == {"success": True, "archived": False}
    with pytest.raises(NotFoundError):
        await get_product(session, str(product.id))


@pytest.mark.asyncio
async def test_delete_product_archives_when_ordered(session, make_product):
    product = await make_product()
    await create_order(session, {
        "email": "buyer@example.com",
        "items": [{"product_id": str(product.id), "quantity": 1, "price": 49.9}],
    })

    assert await delete_product(session, str(product.id)) == {"success": True, "archived": True}
    product = await get_product(session, str(product.id))
    assert product.status == "ARCHIVED"


@pytest.mark.asyncio
async def test_categories(session, make_product):
    dresses = await create_category(session, {"name": "Dresses"})
    assert dresses.slug == "dresses"
    with pytest.raises(ConflictError):
        await create_category(session, {"name": "dresses"})

    await make_product(category_id=str(dresses.id))
    with pytest.raises(ValidationFailed):
        await delete_category(session, str(dresses.id))


@pytest.mark.asyncio
async def test_list_products_filters(session, make_product):
    await make_product(name="Featured Kaftan", featured=True)
    await make_product(name="Plain Tee", status="DRAFT")

    featured = await list_products(session, featured=True)
    assert [p["name"] for p in featured["products"]] == ["Featured Kaftan"]

    active = await list_products(session, status="ACTIVE")
    assert active["pagination"]["total"] == 1

    by_search = await list_products(session, search="tee")
    assert by_search["products"][0]["name"] == "Plain Tee"


@pytest.mark.asyncio
async def test_product_endpoints(client, admin_headers):
    resp = await client.post(
        "/api/products",
        json={"name": "Silk Scarf", "price": 35, "compareAtPrice": 45, "status": "ACTIVE"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    product = resp.json()["product"]
    assert product["compareAtPrice"] == 45.0

    resp = await client.get(f"/api/products/{product['id']}", headers=admin_headers)
    detail = resp.json()["product"]
    assert detail["bundle"] is None
    assert detail["upsells"] == []

    resp = await client.put(f"/api/products/{product['id']}", json={"price": 30}, headers=admin_headers)
    assert resp.json()["product"]["price"] == 30.0

    resp = await client.get("/api/products/does-not-exist", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Product not found"}


@pytest.mark.asyncio
async def test_product_create_defaults_to_draft(client, admin_headers):
    resp = await client.post("/api/products", json={"name": "Wool Beanie", "price": 10}, headers=admin_headers)
    assert resp.status_code == 201
    product = resp.json()["product"]
    assert product["status"] == "DRAFT"
    assert product["publishedAt"] is None

    resp = await client.post(
        "/api/products", json={"name": "Cotton Beanie", "price": 10, "status": None}, headers=admin_headers
    )
    assert resp.status_code == 201
    assert resp.json()["product"]["status"] == "DRAFT"


@pytest.mark.asyncio
async def test_product_create_validation_error_shape(client, admin_headers):
    resp = await client.post("/api/products", json={"price": -1}, headers=admin_headers)
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Validation failed"
    assert {detail["field"] for detail in body["details"]} >= {"name", "price"}
