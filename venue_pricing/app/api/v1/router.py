"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from venue_pricing.app.api.v1.endpoints import pricing, ratesheets, surge_pricing

router = APIRouter()

# Price calculation, quotes and system pricing config
router.include_router(pricing.router)

# Ratesheet management and approval workflow
router.include_router(ratesheets.router)

# Surge configs and materialization
router.include_router(surge_pricing.router)
