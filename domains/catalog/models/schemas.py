"""Pydantic schemas for category and product requests."""

from typing import Optional

from pydantic import Field

from core.schemas import ApiModel


class CategoryCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    image: Optional[str] = None
    parent_id: Optional[str] = None
    position: int = 0
    is_active: bool = True


class CategoryUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    image: Optional[str] = None
    parent_id: Optional[str] = None
    position: Optional[int] = None
    is_active: Optional[bool] = None


class ImageInput(ApiModel):
    url: str
    alt_text: Optional[str] = None


class ProductCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=300)
    price: float = Field(..., ge=0)
    description: Optional[str] = None
    short_description: Optional[str] = None
    compare_at_price: Optional[float] = Field(None, ge=0)
    cost_price: Optional[float] = Field(None, ge=0)
    category_id: Optional[str] = None
    status: Optional[str] = None
    featured: bool = False
    new_arrival: bool = False
    best_seller: bool = False
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    images: list[ImageInput] = Field(default_factory=list)


class ProductUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=300)
    price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    short_description: Optional[str] = None
    compare_at_price: Optional[float] = Field(None, ge=0)
    cost_price: Optional[float] = Field(None, ge=0)
    category_id: Optional[str] = None
    status: Optional[str] = None
    featured: Optional[bool] = None
    new_arrival: Optional[bool] = None
    best_seller: Optional[bool] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    images: Optional[list[ImageInput]] = None
