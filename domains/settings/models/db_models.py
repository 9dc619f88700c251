"""SQLAlchemy models for store settings and external API keys."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, RecordMixin, UTCDateTime, iso


class StoreSettings(RecordMixin, Base):
    """Single-row store configuration, created on first access."""

    __tablename__ = "store_settings"

    store_name: Mapped[str] = mapped_column(String(200), nullable=False, default="My Store")
    store_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    store_logo: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    paypal_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    paypal_client_id: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "storeName": self.store_name,
            "storeUrl": self.store_url,
            "storeLogo": self.store_logo,
            "currency": self.currency,
            "paypalEnabled": self.paypal_enabled,
            "paypalClientId": self.paypal_client_id,
            "updatedAt": iso(self.updated_at),
        }


class ApiKey(RecordMixin, Base):
    """Credential for the external storefront API.

    Only the SHA-256 hash of the key is stored; ``key_prefix`` keeps the
    first characters so admins can tell keys apart.
    """

    __tablename__ = "api_keys"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    key_prefix: Mapped[str] = mapped_column(String(20), nullable=False)
    permissions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    def has_permission(self, permission: str) -> bool:
        granted = self.permissions or []
        return "admin" in granted or permission in granted

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "keyPrefix": self.key_prefix,
            "permissions": list(self.permissions or []),
            "isActive": self.is_active,
            "expiresAt": iso(self.expires_at),
            "lastUsedAt": iso(self.last_used_at),
            "createdAt": iso(self.created_at),
        }
