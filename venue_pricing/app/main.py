"""
FastAPI Application Entry Point.

This is the main application file for the Venue Pricing Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from venue_pricing.app.core.config import settings
from venue_pricing.app.api.v1.router import router as api_v1_router
from venue_pricing.app.core.observability import ObservabilityMiddleware, configure_logging
from venue_pricing.app.db.session import engine, Base
from venue_pricing.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from venue_pricing.app.models.customer import Customer
from venue_pricing.app.models.location import Location
from venue_pricing.app.models.sub_location import SubLocation
from venue_pricing.app.models.event import Event
from venue_pricing.app.models.surge_config import SurgeConfig  # before Ratesheet for FK
from venue_pricing.app.models.ratesheet import Ratesheet
from venue_pricing.app.models.pricing_config import PricingConfig
from venue_pricing.app.models.audit_log import AuditLog

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup.
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
    description="Hierarchical ratesheet and surge pricing for venue bookings",
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
    return {
        "message": "Welcome to Venue Pricing Backend API",
        "docs": "/docs",
        "health": "/health",
    }
