"""
Surge Pricing API Endpoints.

Surge config management, ad-hoc multiplier calculation and materialization
of configs into approvable surge ratesheets.
"""

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from venue_pricing.app.db.session import get_db
from venue_pricing.app.domain.pricing.surge import SurgeParams, calculate_surge
from venue_pricing.app.schemas.ratesheet import RatesheetResponse
from venue_pricing.app.schemas.surge import (
    ArchiveResponse,
    MaterializeRequest,
    RecalculateResponse,
    SurgeCalculateRequest,
    SurgeCalculateResponse,
    SurgeConfigCreate,
    SurgeConfigListResponse,
    SurgeConfigResponse,
)
from venue_pricing.app.services import surge_materialization

router = APIRouter(prefix="/surge-pricing", tags=["Surge Pricing"])


@router.post("/configs", response_model=SurgeConfigResponse, status_code=status.HTTP_201_CREATED)
async def create_surge_config(
    data: SurgeConfigCreate,
    db: AsyncSession = Depends(get_db)
):
    config = await surge_materialization.create_surge_config(db, data)
    return SurgeConfigResponse.from_model(config)


@router.get("/configs", response_model=SurgeConfigListResponse)
async def list_surge_configs(
    active_only: bool = Query(False, alias="activeOnly"),
    db: AsyncSession = Depends(get_db)
):
    configs = await surge_materialization.list_surge_configs(db, active_only=active_only)
    return SurgeConfigListResponse(
        configs=[SurgeConfigResponse.from_model(c) for c in configs],
        total=len(configs),
    )


@router.post("/calculate", response_model=SurgeCalculateResponse)
async def calculate_multiplier(request: SurgeCalculateRequest):
    """Calculate a surge multiplier without persisting anything."""
    params = SurgeParams.from_settings().with_overrides({
        "alpha": request.alpha,
        "minMultiplier": request.min_multiplier,
        "maxMultiplier": request.max_multiplier,
        "emaAlpha": request.ema_alpha,
    })
    calculation = calculate_surge(
        request.demand,
        request.supply,
        request.historical_avg_pressure,
        params,
        previous_smoothed_pressure=request.previous_smoothed_pressure,
    )
    return SurgeCalculateResponse(
        multiplier=calculation.multiplier,
        pressure=calculation.pressure,
        normalized_pressure=calculation.normalized_pressure,
        smoothed_pressure=calculation.smoothed_pressure,
        raw_factor=calculation.raw_factor if math.isfinite(calculation.raw_factor) else None,
        alpha=params.alpha,
        min_multiplier=params.min_multiplier,
        max_multiplier=params.max_multiplier,
    )


@router.post(
    "/configs/{config_id}/materialize",
    response_model=RatesheetResponse,
    status_code=status.HTTP_201_CREATED,
)
async def materialize_surge_config(
    config_id: int,
    data: Optional[MaterializeRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """
    Freeze the current multiplier into a DRAFT surge ratesheet.

    The ratesheet must go through submit and approve before it prices bookings.
    """
    ratesheet = await surge_materialization.materialize_surge_config(
        db, config_id, data.requested_by if data else None
    )
    return RatesheetResponse.from_model(ratesheet)


@router.post(
    "/configs/{config_id}/recalculate",
    response_model=RecalculateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def recalculate_surge_config(
    config_id: int,
    data: Optional[MaterializeRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    old_multiplier, new_multiplier, ratesheet = await surge_materialization.recalculate_surge_config(
        db, config_id, data.requested_by if data else None
    )
    return RecalculateResponse(
        old_multiplier=old_multiplier,
        new_multiplier=new_multiplier,
        ratesheet=RatesheetResponse.from_model(ratesheet),
    )


@router.post("/configs/{config_id}/archive", response_model=ArchiveResponse)
async def archive_surge_ratesheet(
    config_id: int,
    data: Optional[MaterializeRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Deactivate every live surge ratesheet of a config."""
    archived = await surge_materialization.archive_surge_ratesheets(
        db, config_id, data.requested_by if data else None
    )
    return ArchiveResponse(success=bool(archived), ratesheet_ids=[ratesheet.id for ratesheet in archived])
