"""Store settings and API key administration."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.settings import service
from domains.settings.models.schemas import ApiKeyCreate, ApiKeyUpdate, SettingsUpdate

router = APIRouter()


# ============================================================================
# Store settings
# ============================================================================

@router.get("/settings")
async def get_settings(session: AsyncSession = Depends(get_session)):
    settings = await service.get_or_create_settings(session)
    return {"settings": settings.to_dict(), "stripe": service.stripe_status()}


@router.put("/settings")
async def update_settings(request: SettingsUpdate, session: AsyncSession = Depends(get_session)):
    data = {
        key: value
        for key, value in request.model_dump(exclude_unset=True).items()
        if value is not None or key in ("store_url", "store_logo", "paypal_client_id")
    }
    settings = await service.update_settings(session, data)
    return {"settings": settings.to_dict(), "stripe": service.stripe_status()}


# ============================================================================
# API keys
# ============================================================================

@router.get("/api-keys")
async def list_api_keys(session: AsyncSession = Depends(get_session)):
    keys = await service.ApiKeyRepository(session).list_all()
    return {"apiKeys": [key.to_dict() for key in keys]}


@router.post("/api-keys", status_code=201)
async def create_api_key(request: ApiKeyCreate, session: AsyncSession = Depends(get_session)):
    """The raw key is in this response only; it cannot be retrieved later."""
    api_key, raw_key = await service.create_api_key(
        session,
        name=request.name,
        permissions=request.permissions,
        expires_at=request.expires_at,
    )
    return {"apiKey": {**api_key.to_dict(), "key": raw_key}}


@router.put("/api-keys/{key_id}")
async def update_api_key(key_id: str, request: ApiKeyUpdate, session: AsyncSession = Depends(get_session)):
    api_key = await service.update_api_key(session, key_id, request.model_dump(exclude_unset=True))
    return {"apiKey": api_key.to_dict()}


@router.delete("/api-keys/{key_id}")
async def delete_api_key(key_id: str, session: AsyncSession = Depends(get_session)):
    await service.delete_api_key(session, key_id)
    return {"success": True}
