"""
Catalog Shop - Application Entry Point
=======================================
FastAPI app initialization, exception handlers, and router registration.
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import settings
from config.database import Base, engine
from common.exceptions import ShopError
from common.upload import image_pipeline

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("shop.app")

# ==========================================
# Import ALL models so Base can see them
# ==========================================
from modules.catalog.models import Category, Product  # noqa: F401

# ==========================================
# Import routers
# ==========================================
from modules.catalog.routes import router as catalog_router


def _prepare_storage():
    """Create upload directories; the app can't serve without them."""
    try:
        image_pipeline.ensure_dirs()
    except OSError as e:
        logger.critical(f"Cannot create upload directories: {e}")
        sys.exit(1)


_prepare_storage()


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)
    logger.info("Catalog shop started")
    yield
    logger.info("Catalog shop stopped")


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="Catalog Shop",
    description="Storefront catalog API with image ingestion",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)

# ==========================================
# Static Files
# ==========================================
app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


# ==========================================
# Exception handlers
# ==========================================
@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError):
    """Business errors → {"detail": message} with the error's status code."""
    return JSONResponse({"detail": exc.message}, status_code=exc.status_code)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse({"detail": "Internal server error."}, status_code=500)


# ==========================================
# Register Routers
# ==========================================
app.include_router(catalog_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok"}
