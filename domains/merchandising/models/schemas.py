"""Pydantic schemas for upsell and bundle requests."""

from typing import Optional

from pydantic import Field

from core.schemas import ApiModel


class UpsellCreate(ApiModel):
    from_product_id: str
    to_product_id: str
    type: Optional[str] = None
    discount: Optional[float] = Field(None, ge=0)
    message: Optional[str] = None
    position: int = 0
    is_active: Optional[bool] = None


class UpsellUpdate(ApiModel):
    type: Optional[str] = None
    discount: Optional[float] = Field(None, ge=0)
    message: Optional[str] = None
    position: Optional[int] = None
    is_active: Optional[bool] = None


class BundleItemInput(ApiModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    individual_price: Optional[float] = Field(None, ge=0)


class BundleCreate(ApiModel):
    product_id: str
    savings_amount: Optional[float] = Field(None, ge=0)
    savings_percent: Optional[float] = Field(None, ge=0, le=100)
    items: list[BundleItemInput] = Field(default_factory=list)


class BundleUpdate(ApiModel):
    id: Optional[str] = None
    savings_amount: Optional[float] = Field(None, ge=0)
    savings_percent: Optional[float] = Field(None, ge=0, le=100)
    items: Optional[list[BundleItemInput]] = None
