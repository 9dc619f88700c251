"""Storefront operations API: FastAPI entry point.

Registers middleware, error handlers, routers and lifecycle hooks.

- /api/*           dashboard endpoints (admin API key or ADMIN_API_TOKEN)
- /api/orders      public cash-on-delivery orders
- /api/external/*  storefront endpoints (API key with per-route permission)
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.auth import require_admin
from api.errors import register_error_handlers
from api.middleware import ExternalCorsMiddleware, RequestLoggingMiddleware
from core.database import close_db, init_db
from core.logging_config import setup_logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

VERSION = "0.1.0"
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:3001"
).split(",")
INIT_DB = os.getenv("INIT_DB", "false").lower() == "true"


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown hooks."""
    setup_logging()
    if INIT_DB:
        await init_db()
    logger.info("Storefront operations API started")
    yield
    await close_db()
    logger.info("Storefront operations API shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="StoreOps",
    description="E-commerce operations API: catalog, inventory, pricing, orders and storefront checkout",
    version=VERSION,
    lifespan=lifespan,
)

register_error_handlers(app)

# Dashboard CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# Storefront CORS answers /api/external preflights before the dashboard policy
app.add_middleware(ExternalCorsMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from domains.catalog.router import router as catalog_router  # noqa: E402
from domains.coupons.router import router as coupons_router  # noqa: E402
from domains.inventory.router import router as inventory_router  # noqa: E402
from domains.merchandising.router import router as merchandising_router  # noqa: E402
from domains.orders.router import public_router as public_orders_router  # noqa: E402
from domains.orders.router import router as orders_router  # noqa: E402
from domains.pricing.router import router as pricing_router  # noqa: E402
from domains.seo.router import router as seo_router  # noqa: E402
from domains.settings.router import router as settings_router  # noqa: E402
from domains.storefront.router import router as storefront_router  # noqa: E402

_admin = [Depends(require_admin)]

app.include_router(catalog_router, prefix="/api", tags=["Catalog"], dependencies=_admin)
app.include_router(inventory_router, prefix="/api", tags=["Inventory"], dependencies=_admin)
app.include_router(pricing_router, prefix="/api", tags=["Pricing"], dependencies=_admin)
app.include_router(merchandising_router, prefix="/api", tags=["Merchandising"], dependencies=_admin)
app.include_router(coupons_router, prefix="/api", tags=["Coupons"], dependencies=_admin)
app.include_router(orders_router, prefix="/api", tags=["Orders"], dependencies=_admin)
app.include_router(settings_router, prefix="/api", tags=["Settings"], dependencies=_admin)
app.include_router(seo_router, prefix="/api", tags=["SEO"], dependencies=_admin)
app.include_router(public_orders_router, prefix="/api", tags=["Storefront orders"])
app.include_router(storefront_router, prefix="/api/external", tags=["External"])


# ---------------------------------------------------------------------------
# Health & root
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}


@app.get("/")
async def root():
    return {
        "name": "StoreOps",
        "version": VERSION,
        "docs": "/docs",
    }
