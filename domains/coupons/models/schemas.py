"""Pydantic schemas for coupon requests."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from core.schemas import ApiModel


class CouponCreate(ApiModel):
    code: str = Field(..., min_length=1, max_length=50)
    type: str
    value: float = Field(..., ge=0)
    description: Optional[str] = None
    min_purchase: Optional[float] = Field(None, ge=0)
    max_discount: Optional[float] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=0)
    usage_limit_per_user: Optional[int] = Field(None, ge=0)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    applicable_products: list[str] = Field(default_factory=list)
    applicable_categories: list[str] = Field(default_factory=list)
    is_active: Optional[bool] = None


class CouponUpdate(ApiModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    type: Optional[str] = None
    value: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    min_purchase: Optional[float] = Field(None, ge=0)
    max_discount: Optional[float] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=0)
    usage_limit_per_user: Optional[int] = Field(None, ge=0)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    applicable_products: Optional[list[str]] = None
    applicable_categories: Optional[list[str]] = None
    is_active: Optional[bool] = None
