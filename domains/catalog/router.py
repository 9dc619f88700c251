"""Catalog API router: categories and products."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.catalog import service
from domains.catalog.models.schemas import CategoryCreate, CategoryUpdate, ProductCreate, ProductUpdate

router = APIRouter()


# ============================================================================
# Categories
# ============================================================================

@router.get("/categories")
async def list_categories(
    active_only: bool = Query(False, alias="activeOnly"),
    session: AsyncSession = Depends(get_session),
):
    return {"categories": await service.list_categories(session, active_only=active_only)}


@router.post("/categories", status_code=201)
async def create_category(
    request: CategoryCreate,
    session: AsyncSession = Depends(get_session),
):
    category = await service.create_category(session, request.model_dump())
    return {"category": category.to_dict()}


@router.get("/categories/{category_id}")
async def get_category(category_id: str, session: AsyncSession = Depends(get_session)):
    category = await service.get_category(session, category_id)
    return {"category": category.to_dict()}


@router.put("/categories/{category_id}")
async def update_category(
    category_id: str,
    request: CategoryUpdate,
    session: AsyncSession = Depends(get_session),
):
    category = await service.update_category(session, category_id, request.model_dump(exclude_unset=True))
    return {"category": category.to_dict()}


@router.delete("/categories/{category_id}")
async def delete_category(category_id: str, session: AsyncSession = Depends(get_session)):
    await service.delete_category(session, category_id)
    return {"success": True}


# ============================================================================
# Products
# ============================================================================

@router.get("/products")
async def list_products(
    search: Optional[str] = None,
    status: Optional[str] = None,
    category_id: Optional[str] = Query(None, alias="categoryId"),
    category: Optional[str] = None,
    slug: Optional[str] = None,
    featured: bool = False,
    new_arrival: bool = Query(False, alias="newArrival"),
    best_seller: bool = Query(False, alias="bestSeller"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    """Products with search, flag filters, sorting and pagination.

    ``category`` filters by category slug, ``categoryId`` by id.
    """
    return await service.list_products(
        session,
        page=page,
        limit=limit,
        search=search,
        status=status,
        category_id=category_id,
        category_slug=category,
        slug=slug,
        featured=featured,
        new_arrival=new_arrival,
        best_seller=best_seller,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.post("/products", status_code=201)
async def create_product(
    request: ProductCreate,
    session: AsyncSession = Depends(get_session),
):
    product = await service.create_product(session, request.model_dump())
    return {"product": product.to_dict()}


@router.get("/products/{product_id}")
async def get_product(product_id: str, session: AsyncSession = Depends(get_session)):
    return {"product": await service.get_product_detail(session, product_id)}


@router.put("/products/{product_id}")
async def update_product(
    product_id: str,
    request: ProductUpdate,
    session: AsyncSession = Depends(get_session),
):
    product = await service.update_product(session, product_id, request.model_dump(exclude_unset=True))
    return {"product": product.to_dict()}


@router.delete("/products/{product_id}")
async def delete_product(product_id: str, session: AsyncSession = Depends(get_session)):
    """Hard delete, or archive when the product appears on orders."""
    return await service.delete_product(session, product_id)
