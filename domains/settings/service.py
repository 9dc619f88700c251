"""Store settings and external API key management.

API keys are shown to the admin exactly once at creation. Only the
SHA-256 hex digest is persisted, so a leaked database cannot be replayed
against the external API.
"""

import hashlib
import logging
import os
import secrets
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AuthenticationError, NotFoundError, ValidationFailed
from core.models.base import utcnow
from domains.pricing.currencies import require_currency
from domains.settings.models.db_models import ApiKey, StoreSettings
from patterns.domain_config import config
from patterns.repository import BaseRepository

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "nxts_"
PERMISSIONS = ("read", "write", "checkout", "webhooks", "admin")
DEFAULT_PERMISSIONS = ["read"]


class ApiKeyRepository(BaseRepository[ApiKey]):
    model = ApiKey

    async def get_by_hash(self, hashed: str) -> ApiKey | None:
        result = await self.session.execute(select(ApiKey).where(ApiKey.key == hashed))
        return result.scalar_one_or_none()

    async def list_all(self) -> list[ApiKey]:
        result = await self.session.execute(select(ApiKey).order_by(ApiKey.created_at.desc()))
        return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Store settings
# ---------------------------------------------------------------------------

async def get_store_settings(session: AsyncSession) -> StoreSettings | None:
    result = await session.execute(select(StoreSettings).limit(1))
    return result.scalar_one_or_none()


async def get_or_create_settings(session: AsyncSession) -> StoreSettings:
    """Return the single settings row, creating it with defaults if absent."""
    settings = await get_store_settings(session)
    if settings is None:
        settings = StoreSettings(store_name=config.default_store_name, currency=config.pricing.fallback_currency)
        session.add(settings)
        await session.flush()
        logger.info("Created default store settings")
    return settings


async def update_settings(session: AsyncSession, data: dict) -> StoreSettings:
    settings = await get_or_create_settings(session)
    if data.get("currency"):
        data["currency"] = require_currency(data["currency"])
    for key, value in data.items():
        if hasattr(settings, key):
            setattr(settings, key, value)
    await session.flush()
    return settings


def mask_secret(value: str | None) -> str | None:
    if not value:
        return None
    if len(value) <= 12:
        return "*" * len(value)
    return f"{value[:7]}...{value[-4:]}"


def stripe_status() -> dict:
    """Stripe configuration as seen from the environment, secrets masked."""
    secret = os.getenv("STRIPE_SECRET_KEY")
    publishable = os.getenv("STRIPE_PUBLISHABLE_KEY")
    webhook = os.getenv("STRIPE_WEBHOOK_SECRET")
    return {
        "enabled": bool(secret),
        "testMode": bool(secret and secret.startswith("sk_test_")),
        "secretKey": mask_secret(secret),
        "publishableKey": publishable,
        "webhookConfigured": bool(webhook),
    }


# ---------------------------------------------------------------------------
# API keys
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GeneratedKey:
    raw_key: str
    hashed_key: str
    prefix: str


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def generate_api_key() -> GeneratedKey:
    """``nxts_`` followed by 64 hex characters."""
    raw_key = f"{API_KEY_PREFIX}{secrets.token_hex(32)}"
    return GeneratedKey(raw_key=raw_key, hashed_key=hash_api_key(raw_key), prefix=raw_key[:12])


def _check_permissions(permissions: list[str]) -> list[str]:
    unknown = sorted(set(permissions) - set(PERMISSIONS))
    if unknown:
        raise ValidationFailed(f"Unknown permissions: {', '.join(unknown)}")
    return list(dict.fromkeys(permissions))


async def create_api_key(
    session: AsyncSession,
    name: str,
    permissions: list[str] | None = None,
    expires_at=None,
) -> tuple[ApiKey, str]:
    """Create a key and return it together with the raw secret."""
    if not name or not name.strip():
        raise ValidationFailed("Name is required")
    generated = generate_api_key()
    api_key = await ApiKeyRepository(session).create({
        "name": name.strip(),
        "key": generated.hashed_key,
        "key_prefix": generated.prefix,
        "permissions": _check_permissions(permissions or list(DEFAULT_PERMISSIONS)),
        "expires_at": expires_at,
    })
    logger.info("Created API key %s (%s)", api_key.name, api_key.key_prefix)
    return api_key, generated.raw_key


async def update_api_key(session: AsyncSession, key_id: str, data: dict) -> ApiKey:
    repo = ApiKeyRepository(session)
    api_key = await repo.get(key_id)
    if api_key is None:
        raise NotFoundError("API key not found")
    if "permissions" in data and data["permissions"] is not None:
        data["permissions"] = _check_permissions(data["permissions"])
    allowed = {
        k: v for k, v in data.items()
        if k in ("name", "permissions", "is_active", "expires_at") and (v is not None or k == "expires_at")
    }
    return await repo.update(api_key, allowed)


async def delete_api_key(session: AsyncSession, key_id: str) -> None:
    repo = ApiKeyRepository(session)
    api_key = await repo.get(key_id)
    if api_key is None:
        raise NotFoundError("API key not found")
    await repo.delete(api_key)


async def validate_api_key(session: AsyncSession, authorization: str | None) -> ApiKey:
    """Resolve an ``Authorization: Bearer <key>`` header to an active key.

    Raises AuthenticationError with a message describing what is wrong.
    """
    if not authorization:
        raise AuthenticationError("Missing Authorization header")

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme != "Bearer" or not token:
        raise AuthenticationError("Invalid Authorization format. Use: Bearer <api_key>")

    api_key = await ApiKeyRepository(session).get_by_hash(hash_api_key(token))
    if api_key is None:
        raise AuthenticationError("Invalid API key")
    if not api_key.is_active:
        raise AuthenticationError("API key is deactivated")
    if api_key.expires_at is not None and api_key.expires_at < utcnow():
        raise AuthenticationError("API key has expired")

    api_key.last_used_at = utcnow()
    await session.flush()
    return api_key
