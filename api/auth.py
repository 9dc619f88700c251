"""Request authentication dependencies.

- require_permission(p): external storefront endpoints, API key with ``p``
- require_admin: dashboard endpoints, an ``admin`` API key or ADMIN_API_TOKEN
"""

import hmac
import os

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.errors import PermissionDenied
from domains.settings.models.db_models import ApiKey
from domains.settings.service import validate_api_key


async def authorize(session: AsyncSession, authorization: str | None, permission: str) -> ApiKey:
    api_key = await validate_api_key(session, authorization)
    if not api_key.has_permission(permission):
        # Keep the last_used_at stamp; the 403 rolls the request session back.
        await session.commit()
        raise PermissionDenied(f"Missing required permission: {permission}")
    return api_key


def require_permission(permission: str):
    """Dependency factory returning the authenticated ApiKey.

    Usage::

        @router.get("/products")
        async def products(api_key: ApiKey = Depends(require_permission("read"))):
            ...
    """

    async def dependency(
        request: Request,
        session: AsyncSession = Depends(get_session),
    ) -> ApiKey:
        api_key = await authorize(session, request.headers.get("Authorization"), permission)
        request.state.api_key_name = api_key.name
        return api_key

    return dependency


async def require_admin(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> str:
    """Return the caller's name: the API key name or ``"admin-token"``."""
    authorization = request.headers.get("Authorization") or ""
    scheme, _, token = authorization.partition(" ")
    token = token.strip()

    admin_token = os.getenv("ADMIN_API_TOKEN", "")
    if scheme == "Bearer" and admin_token and hmac.compare_digest(token, admin_token):
        return "admin-token"

    api_key = await authorize(session, authorization or None, "admin")
    return api_key.name
