"""Pydantic schemas for order requests."""

from typing import Optional

from pydantic import Field

from core.schemas import ApiModel


class OrderItemInput(ApiModel):
    product_id: Optional[str] = None
    name: Optional[str] = None
    sku: Optional[str] = None
    quantity: int = Field(1, ge=1)
    price: Optional[float] = Field(None, ge=0)
    image: Optional[str] = None


class OrderCreate(ApiModel):
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None
    items: list[OrderItemInput] = Field(default_factory=list)
    payment_method: Optional[str] = None
    shipping_amount: Optional[float] = Field(None, ge=0)
    tax_amount: Optional[float] = Field(None, ge=0)
    discount_amount: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    coupon_code: Optional[str] = None
    notes: Optional[str] = None
    shipping_first_name: Optional[str] = None
    shipping_last_name: Optional[str] = None
    shipping_address1: Optional[str] = None
    shipping_address2: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_state: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    shipping_country: Optional[str] = Field(None, max_length=2)


class OrderUpdate(ApiModel):
    status: Optional[str] = None
    payment_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    shipping_first_name: Optional[str] = None
    shipping_last_name: Optional[str] = None
    shipping_address1: Optional[str] = None
    shipping_address2: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_state: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    shipping_country: Optional[str] = Field(None, max_length=2)


class CodCustomer(ApiModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class CodShipping(ApiModel):
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = Field(None, max_length=2)


class CodOrderCreate(ApiModel):
    items: list[OrderItemInput] = Field(default_factory=list)
    customer: CodCustomer = Field(default_factory=CodCustomer)
    shipping: CodShipping = Field(default_factory=CodShipping)
    shipping_cost: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
