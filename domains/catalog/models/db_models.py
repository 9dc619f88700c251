"""SQLAlchemy models for the product catalog.

Products own their images and variants; categories form a shallow tree
through ``parent_id``. to_dict() renders the camelCase shape the admin
dashboard and the storefront both consume.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.models.base import Base, RecordMixin, UTCDateTime, iso, money


class ProductStatus:
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"

    ALL = (DRAFT, ACTIVE, ARCHIVED)


class Category(RecordMixin, Base):
    """A product category."""

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(220), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "image": self.image,
            "parentId": str(self.parent_id) if self.parent_id else None,
            "position": self.position,
            "isActive": self.is_active,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class Product(RecordMixin, Base):
    """A sellable product."""

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(300), nullable=False)
    slug: Mapped[str] = mapped_column(String(320), unique=True, nullable=False, index=True)
    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    short_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    compare_at_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    cost_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ProductStatus.DRAFT)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    new_arrival: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    best_seller: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    meta_title: Mapped[str | None] = mapped_column(String(300), nullable=True)
    meta_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    stripe_product_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    stripe_price_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    category: Mapped[Optional["Category"]] = relationship(lazy="selectin")
    images: Mapped[list["ProductImage"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.position",
        lazy="selectin",
    )
    variants: Mapped[list["ProductVariant"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.position",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "slug": self.slug,
            "sku": self.sku,
            "description": self.description,
            "shortDescription": self.short_description,
            "price": money(self.price),
            "compareAtPrice": money(self.compare_at_price),
            "costPrice": money(self.cost_price),
            "categoryId": str(self.category_id) if self.category_id else None,
            "category": self.category.to_dict() if self.category else None,
            "status": self.status,
            "featured": self.featured,
            "newArrival": self.new_arrival,
            "bestSeller": self.best_seller,
            "metaTitle": self.meta_title,
            "metaDescription": self.meta_description,
            "publishedAt": iso(self.published_at),
            "stripeProductId": self.stripe_product_id,
            "stripePriceId": self.stripe_price_id,
            "images": [image.to_dict() for image in self.images],
            "variants": [variant.to_dict() for variant in self.variants],
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def summary(self) -> dict:
        """Compact shape embedded in inventory, order and upsell listings."""
        return {
            "id": str(self.id),
            "name": self.name,
            "slug": self.slug,
            "sku": self.sku,
            "price": money(self.price),
            "status": self.status,
            "image": self.images[0].url if self.images else None,
        }


class ProductImage(RecordMixin, Base):
    __tablename__ = "product_images"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    alt_text: Mapped[str | None] = mapped_column(String(300), nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    product: Mapped["Product"] = relationship(back_populates="images")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "url": self.url,
            "altText": self.alt_text,
            "position": self.position,
            "isPrimary": self.is_primary,
        }


class ProductVariant(RecordMixin, Base):
    __tablename__ = "product_variants"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product: Mapped["Product"] = relationship(back_populates="variants")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "sku": self.sku,
            "name": self.name,
            "price": money(self.price),
            "position": self.position,
        }
