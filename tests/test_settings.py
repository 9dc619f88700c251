"""Test store settings, API key management and dashboard authentication."""
from datetime import timedelta

import pytest
from sqlalchemy import select

from core.errors import AuthenticationError, NotFoundError, ValidationFailed
from core.models.base import utcnow
from domains.settings.models.db_models import ApiKey
from domains.settings.service import (
    create_api_key,
    delete_api_key,
    hash_api_key,
    mask_secret,
    stripe_status,
    update_api_key,
    validate_api_key,
)


@pytest.mark.asyncio
async def test_create_api_key_stores_hash(session):
    api_key, raw_key = await create_api_key(session, name=" Storefront ")

    assert raw_key.startswith("nxts_")
    assert len(raw_key) == 5 + 64
    assert api_key.name == "Storefront"
    assert api_key.key == hash_api_key(raw_key)
    assert api_key.key != raw_key
    assert api_key.key_prefix == raw_key[:12]
    assert api_key.permissions == ["read"]


@pytest.mark.asyncio
async def test_create_api_key_validation(session):
    with pytest.raises(ValidationFailed, match="Unknown permissions: delete"):
        await create_api_key(session, name="Bad", permissions=["read", "delete"])
    with pytest.raises(ValidationFailed, match="Name is required"):
        await create_api_key(session, name="  ")

    api_key, _ = await create_api_key(session, name="Dup", permissions=["write", "read", "write"])
    assert api_key.permissions == ["write", "read"]


@pytest.mark.asyncio
async def test_validate_api_key(session):
    api_key, raw_key = await create_api_key(session, name="Checkout", permissions=["checkout"])
    assert api_key.last_used_at is None

    validated = await validate_api_key(session, f"Bearer {raw_key}")
    assert validated.id == api_key.id
    assert validated.last_used_at is not None
    assert validated.has_permission("checkout")
    assert not validated.has_permission("write")

    with pytest.raises(AuthenticationError, match="Missing Authorization header"):
        await validate_api_key(session, None)
    with pytest.raises(AuthenticationError, match="Invalid Authorization format"):
        await validate_api_key(session, f"Token {raw_key}")
    with pytest.raises(AuthenticationError, match="Invalid API key"):
        await validate_api_key(session, "Bearer nxts_unknown")

    await update_api_key(session, str(api_key.id), {"expires_at": utcnow() - timedelta(minutes=1)})
    with pytest.raises(AuthenticationError, match="expired"):
        await validate_api_key(session, f"Bearer {raw_key}")


@pytest.mark.asyncio
async def test_update_and_delete_api_key(session):
    api_key, _ = await create_api_key(session, name="Ops", permissions=["read"])

    updated = await update_api_key(session, str(api_key.id), {
        "name": "Ops team", "permissions": ["read", "write"], "is_active": None,
    })
    assert updated.name == "Ops team"
    assert updated.permissions == ["read", "write"]
    assert updated.is_active

    with pytest.raises(ValidationFailed):
        await update_api_key(session, str(api_key.id), {"permissions": ["root"]})

    await delete_api_key(session, str(api_key.id))
    with pytest.raises(NotFoundError, match="API key not found"):
        await delete_api_key(session, str(api_key.id))
    with pytest.raises(NotFoundError):
        await update_api_key(session, "not-a-uuid", {"name": "x"})


def test_mask_secret():
    assert mask_secret(None) is None
    assert mask_secret("short") == "*****"
    assert mask_secret("sk_test_abcdefghijklmnop") == "sk_test...mnop"


def test_stripe_status(monkeypatch):
    assert stripe_status() == {
        "enabled": False,
        "testMode": False,
        "secretKey": None,
        "publishableKey": None,
        "webhookConfigured": False,
    }

    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_1234567890abcdef")
    monkeypatch.setenv("STRIPE_PUBLISHABLE_KEY", "pk_test_visible")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_x")
    status = stripe_status()
    assert status["enabled"] and status["testMode"] and status["webhookConfigured"]
    assert status["secretKey"] == "sk_test...cdef"
    assert status["publishableKey"] == "pk_test_visible"


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_dashboard_auth(client, make_api_key):
    resp = await client.get("/api/settings")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Missing Authorization header"}

    resp = await client.get("/api/settings", headers={"Authorization": "Bearer wrong-token"})
    assert resp.status_code == 401

    reader = await make_api_key("read", name="Reader")
    resp = await client.get("/api/settings", headers=reader)
    assert resp.status_code == 403
    assert resp.json() == {"error": "Missing required permission: admin"}

    admin = await make_api_key("admin", name="Back office")
    resp = await client.get("/api/settings", headers=admin)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_denied_keys_still_record_last_use(client, session, make_api_key):
    reader = await make_api_key("read", name="Reader")

    resp = await client.post("/api/external/checkout", json={"items": []}, headers=reader)
    assert resp.status_code == 403
    assert resp.json() == {"error": "Missing required permission: checkout"}

    session.expire_all()
    api_key = (await session.execute(select(ApiKey).where(ApiKey.name == "Reader"))).scalar_one()
    first_use = api_key.last_used_at
    assert first_use is not None

    resp = await client.get("/api/settings", headers=reader)
    assert resp.status_code == 403
    session.expire_all()
    api_key = (await session.execute(select(ApiKey).where(ApiKey.name == "Reader"))).scalar_one()
    assert api_key.last_used_at >= first_use


@pytest.mark.asyncio
async def test_settings_endpoints(client, admin_headers, monkeypatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_live_1234567890abcdef")

    resp = await client.get("/api/settings", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["settings"]["storeName"] == "My Store"
    assert data["settings"]["currency"] == "USD"
    assert data["stripe"]["enabled"] is True
    assert data["stripe"]["testMode"] is False
    assert data["stripe"]["secretKey"] == "sk_live...cdef"

    resp = await client.put(
        "/api/settings",
        json={"storeName": "Atlas Bazaar", "currency": "mad", "storeUrl": "https://atlas.example"},
        headers=admin_headers,
    )
    settings = resp.json()["settings"]
    assert settings["storeName"] == "Atlas Bazaar"
    assert settings["currency"] == "MAD"
    assert settings["storeUrl"] == "https://atlas.example"

    resp = await client.put("/api/settings", json={"storeUrl": None}, headers=admin_headers)
    assert resp.json()["settings"]["storeUrl"] is None
    assert resp.json()["settings"]["storeName"] == "Atlas Bazaar"

    resp = await client.put("/api/settings", json={"currency": "EURO"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation failed"

    resp = await client.put("/api/settings", json={"currency": "xyz"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Unsupported currency: XYZ"}


@pytest.mark.asyncio
async def test_api_key_endpoints(client, admin_headers):
    resp = await client.post(
        "/api/api-keys", json={"name": "Headless shop", "permissions": ["read", "checkout"]}, headers=admin_headers
    )
    assert resp.status_code == 201
    created = resp.json()["apiKey"]
    assert created["key"].startswith("nxts_")
    assert created["keyPrefix"] == created["key"][:12]

    resp = await client.get("/api/api-keys", headers=admin_headers)
    listed = resp.json()["apiKeys"]
    assert len(listed) == 1
    assert "key" not in listed[0]

    resp = await client.get("/api/external/config", headers={"Authorization": f"Bearer {created['key']}"})
    assert resp.status_code == 200

    resp = await client.put(f"/api/api-keys/{created['id']}", json={"isActive": False}, headers=admin_headers)
    assert resp.json()["apiKey"]["isActive"] is False

    resp = await client.get("/api/external/config", headers={"Authorization": f"Bearer {created['key']}"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "API key is deactivated"}

    resp = await client.post("/api/api-keys", json={"name": "x", "permissions": ["nope"]}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Unknown permissions: nope"}

    resp = await client.delete(f"/api/api-keys/{created['id']}", headers=admin_headers)
    assert resp.json() == {"success": True}
    resp = await client.delete(f"/api/api-keys/{created['id']}", headers=admin_headers)
    assert resp.status_code == 404
