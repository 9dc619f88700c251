"""Pydantic schemas for external storefront requests."""

from typing import Optional

from pydantic import Field

from core.schemas import ApiModel


class CheckoutItem(ApiModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: int = Field(..., ge=0, description="Unit amount in minor units (cents)")
    quantity: int = Field(1, ge=1)
    image: Optional[str] = None


class CheckoutRequest(ApiModel):
    items: list[CheckoutItem] = Field(default_factory=list)
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None
    customer_email: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)
    coupon_code: Optional[str] = None
