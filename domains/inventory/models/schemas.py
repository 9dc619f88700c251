"""Pydantic schemas for inventory requests."""

from typing import Optional

from pydantic import Field

from core.schemas import ApiModel


class StockAdjustRequest(ApiModel):
    product_id: str
    variant_id: Optional[str] = None
    warehouse_id: Optional[str] = None
    quantity: int = Field(..., ge=0)
    type: str
    reason: Optional[str] = None
    reference: Optional[str] = None


class WarehouseCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    is_default: bool = False
    is_active: bool = True
