"""
FastAPI Application Entry Point.

This is the main application file for the InspectSwap Marketplace backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from inspectswap.app.core.config import settings
from inspectswap.app.api.v1.router import router as api_v1_router
from inspectswap.app.core.jwt import create_access_token
from inspectswap.app.core.observability import ObservabilityMiddleware, configure_logging
from inspectswap.app.db.session import engine, Base
from inspectswap.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from inspectswap.app.models.ledger_entry import LedgerEntry
from inspectswap.app.models.report import Report
from inspectswap.app.models.bounty import Bounty
from inspectswap.app.models.download import Download
from inspectswap.app.models.audit_log import AuditLog

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup and disposes the engine on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Credit marketplace for home inspection reports",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the InspectSwap Marketplace API",
        "docs": "/docs",
        "health": "/health",
    }


if settings.debug:
    @app.post("/auth/test-token", tags=["Authentication"])
    async def generate_test_token(user_id: str = "test_user", username: str = "test_user"):
        """
        Generate a test JWT token.

        Stands in for the external identity provider during local development.
        Only mounted when DEBUG is enabled.
        """
        token = create_access_token(data={"sub": username, "user_id": user_id})
        return {
            "access_token": token,
            "token_type": "bearer",
            "user_id": user_id,
            "username": username,
        }
