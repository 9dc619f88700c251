"""Pydantic schemas for pricing region and regional price requests."""

from typing import Optional

from pydantic import Field

from core.schemas import ApiModel


class RegionCreate(ApiModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)
    currency: str = Field(..., min_length=3, max_length=3)
    countries: list[str] = Field(default_factory=list)
    is_default: bool = False
    sort_order: int = 0


class RegionUpdate(ApiModel):
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    name: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    countries: Optional[list[str]] = None
    is_default: Optional[bool] = None
    sort_order: Optional[int] = None


class RegionalPriceEntry(ApiModel):
    region_id: str
    price: Optional[float] = Field(None, ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)


class RegionalPricesUpdate(ApiModel):
    prices: list[RegionalPriceEntry]
