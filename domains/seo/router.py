"""Gemini configuration and SEO generation endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.seo import service
from domains.seo.models.schemas import (
    BatchSEORequest,
    CategorySEORequest,
    ConnectionTest,
    GeminiConfigCreate,
    GeminiConfigUpdate,
    ProductDescriptionRequest,
    ProductSEORequest,
)
from domains.seo.service import GeminiAPIError, gemini_service

router = APIRouter(prefix="/gemini")


# ============================================================================
# Configurations
# ============================================================================

@router.get("/config")
async def list_configs(session: AsyncSession = Depends(get_session)):
    """Stored configs with their usage counts. API keys are never listed."""
    return {"success": True, "configs": await service.list_configs(session)}


@router.post("/config", status_code=201)
async def create_config(request: GeminiConfigCreate, session: AsyncSession = Depends(get_session)):
    record = await service.create_config(session, request.model_dump())
    return {"success": True, "config": record.to_dict()}


@router.put("/config/{config_id}")
async def update_config(config_id: str, request: GeminiConfigUpdate, session: AsyncSession = Depends(get_session)):
    record = await service.update_config(session, config_id, request.model_dump(exclude_unset=True))
    return {"success": True, "config": record.to_dict()}


@router.delete("/config/{config_id}")
async def delete_config(config_id: str, session: AsyncSession = Depends(get_session)):
    await service.delete_config(session, config_id)
    return {"success": True}


@router.post("/test")
async def test_connection(request: ConnectionTest, session: AsyncSession = Depends(get_session)):
    return await service.test_settings(session, request.model_dump())


# ============================================================================
# Generation
# ============================================================================

@router.post("/product-seo")
async def product_seo(request: ProductSEORequest, session: AsyncSession = Depends(get_session)):
    settings = await service.resolve_settings(session)
    result = await gemini_service.generate_product_seo(settings, request.model_dump())
    if not result["success"]:
        return JSONResponse({"error": result.get("error") or "Failed to generate SEO"}, status_code=500)
    await service.log_usage(session, settings, "PRODUCT_SEO", "PRODUCT_MANAGEMENT", result)
    return result


@router.post("/category-seo")
async def category_seo(request: CategorySEORequest, session: AsyncSession = Depends(get_session)):
    settings = await service.resolve_settings(session)
    result = await gemini_service.generate_category_seo(settings, request.model_dump())
    if not result["success"]:
        return JSONResponse({"error": result.get("error") or "Failed to generate SEO"}, status_code=500)
    await service.log_usage(session, settings, "CATEGORY_SEO", "CONTENT_CREATION", result)
    return result


@router.post("/product-seo/batch")
async def batch_product_seo(request: BatchSEORequest, session: AsyncSession = Depends(get_session)):
    """Items are generated one after another; per-item failures are reported, not raised."""
    settings = await service.resolve_settings(session)
    items = [item.model_dump() for item in request.items]
    result = await gemini_service.generate_batch_product_seo(
        settings, items, delay_between_ms=request.delay_between_ms
    )
    for item_result in result["results"]:
        if item_result["success"]:
            await service.log_usage(session, settings, "PRODUCT_SEO", "PRODUCT_MANAGEMENT", item_result)
    return result


@router.post("/product-description")
async def product_description(request: ProductDescriptionRequest, session: AsyncSession = Depends(get_session)):
    settings = await service.resolve_settings(session)
    try:
        text = await gemini_service.generate_product_description(
            settings,
            request.product_name,
            request.features,
            request.benefits,
            target_language=request.target_language,
        )
    except GeminiAPIError as exc:
        return JSONResponse({"error": exc.message, "code": exc.code}, status_code=500)
    return {"success": True, "description": text}
