"""Shared fixtures: in-memory SQLite, the ASGI app and seeded records."""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ADMIN_API_TOKEN"] = "test-admin-token"
for _name in ("STRIPE_SECRET_KEY", "STRIPE_PUBLISHABLE_KEY", "STRIPE_WEBHOOK_SECRET", "GEMINI_API_KEY"):
    os.environ.pop(_name, None)

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import domains  # noqa: F401
from api.main import app
from core.database import get_session
from core.models.base import Base
from domains.catalog.service import create_product
from domains.settings.service import create_api_key, get_or_create_settings

ADMIN_HEADERS = {"Authorization": "Bearer test-admin-token"}


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return dict(ADMIN_HEADERS)


@pytest.fixture
def make_product(session):
    async def factory(**overrides):
        data = {"name": "Linen Shirt", "price": 49.9, "status": "ACTIVE", **overrides}
        product = await create_product(session, data)
        await session.commit()
        return product

    return factory


@pytest.fixture
def make_api_key(session):
    """Create a key and return request headers carrying it."""

    async def factory(*permissions, name="Storefront"):
        _, raw_key = await create_api_key(session, name=name, permissions=list(permissions) or None)
        await session.commit()
        return {"Authorization": f"Bearer {raw_key}"}

    return factory


@pytest_asyncio.fixture
async def store_settings(session):
    settings = await get_or_create_settings(session)
    await session.commit()
    return settings
