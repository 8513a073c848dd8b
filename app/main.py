"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException

from app.api.admin import router as admin_router
from app.api.appraisals import router as appraisals_router
from app.api.committees import router as committees_router
from app.api.errors import setup_exception_handlers
from app.core.config import settings
from app.core.database import db
from app.core.logging import logger, setup_logging
from app.middleware import (
    LoggingMiddleware,
    RequestIDMiddleware,
    setup_cors,
    setup_rate_limiting,
)
from app.repositories.store import configure_store

# Configure logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    # Startup
    logger.info("application_starting", storage_backend=settings.storage_backend)
    store = configure_store()
    if store.backend == "postgres":
        await db.connect()
    logger.info("application_ready")

    yield

    # Shutdown
    logger.info("application_shutting_down")
    if store.backend == "postgres":
        await db.disconnect()
    logger.info("application_stopped")


# Create FastAPI app
app = FastAPI(
    title="Faculty Appraisal Service",
    description="Annual faculty appraisal lifecycle with committee verification",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware runs outermost-last: request id is bound before logging sees the request
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
setup_cors(app)
setup_rate_limiting(app)
setup_exception_handlers(app)

# Include routers
app.include_router(appraisals_router)
app.include_router(committees_router)
app.include_router(admin_router)


@app.get("/health")
async def health_check() -> dict[str, Any]:
    """
    Health check endpoint.

    With PostgreSQL storage, verifies connectivity and reports pool stats.

    Returns:
        dict: Health status with storage backend and pool information

    Raises:
        HTTPException: 503 if database is unavailable
    """
    if settings.storage_backend == "memory":
        return {"status": "healthy", "storage": "memory"}

    try:
        await db.fetchval("SELECT 1")

        if not db.pool:
            raise RuntimeError("Database pool not initialized")

        pool_size = db.pool.get_size()
        pool_free = db.pool.get_idle_size()

        return {
            "status": "healthy",
            "storage": "postgres",
            "database": "connected",
            "pool": {
                "size": pool_size,
                "free": pool_free,
                "in_use": pool_size - pool_free,
            },
        }
    except Exception as e:
        logger.error("health_check_failed", error=str(e))
        raise HTTPException(status_code=503, detail="Database unavailable") from e


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Faculty Appraisal Service"}


def run() -> None:
    """Serve the app with uvicorn (``appraisal-service`` console script)."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    run()
