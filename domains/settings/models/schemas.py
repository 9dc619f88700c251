"""Pydantic schemas for store settings and API key requests."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from core.schemas import ApiModel


class SettingsUpdate(ApiModel):
    store_name: Optional[str] = Field(None, min_length=1, max_length=200)
    store_url: Optional[str] = None
    store_logo: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    paypal_enabled: Optional[bool] = None
    paypal_client_id: Optional[str] = None


class ApiKeyCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    permissions: Optional[list[str]] = None
    expires_at: Optional[datetime] = None


class ApiKeyUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    permissions: Optional[list[str]] = None
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None
