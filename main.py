"""
Ledgerline - FastAPI Application Entry Point

Double-entry bookkeeping back office: chart of accounts, details,
fiscal years, journals and the treasury bridge.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import close_db, get_async_session, init_db
from app.utils.error_handling import setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")

    # Initialize database (dev only - use migrations in production)
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Double-entry bookkeeping back office with a treasury-to-ledger bridge",
    version="0.1.0",
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)


# ===========================================
# API ROUTES
# ===========================================

@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "running",
        "environment": settings.app_env,
        "api_docs": "/api/docs" if settings.is_development else "disabled",
        "api_prefix": f"/api/{settings.api_version}",
    }


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_async_session)):
    """Health check endpoint; also proves the database answers."""
    await db.execute(text("SELECT 1"))
    return {"status": "healthy", "database": "ok"}


# ===========================================
# INCLUDE ROUTERS
# ===========================================

from app.routers import (  # noqa: E402
    codes, details, detail_levels, fiscal_years,
    journals, treasury, treasury_documents, settings as settings_router,
)

API_PREFIX = f"/api/{settings.api_version}"

ROUTES = (
    (codes.router, "/codes", "Codes"),
    (details.router, "/details", "Details"),
    (detail_levels.router, "/detail-levels", "Detail Levels"),
    (fiscal_years.router, "/fiscal-years", "Fiscal Years"),
    (journals.router, "/journals", "Journals"),
    (treasury.router, "/treasury", "Treasury"),
    (treasury_documents.router, "/treasury", "Receipts & Payments"),
    (settings_router.router, "/settings", "Settings"),
)

for router, path, tag in ROUTES:
    app.include_router(router, prefix=f"{API_PREFIX}{path}", tags=[tag])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
