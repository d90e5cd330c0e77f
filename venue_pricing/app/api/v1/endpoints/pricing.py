"""
Pricing API Endpoints.

Price calculation against persisted ratesheets, self-contained quotes,
timezone resolution and the system pricing config.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from venue_pricing.app.core.config import settings
from venue_pricing.app.db.session import get_db
from venue_pricing.app.domain.pricing.engine import calculate_price
from venue_pricing.app.domain.pricing.pricing_service import (
    PricingService,
    calculate_pricing,
    get_or_create_pricing_config,
)
from venue_pricing.app.domain.pricing.surge import SurgeParams
from venue_pricing.app.domain.pricing.windows import load_timezone
from venue_pricing.app.schemas.pricing import (
    PricingCalculateRequest,
    PricingConfigResponse,
    PricingConfigUpdate,
    PricingResultResponse,
    QuoteRequest,
    TimezoneResponse,
)
from venue_pricing.app.services.audit import AuditAction, log_event

router = APIRouter(prefix="/pricing", tags=["Pricing"])


def _config_response(config) -> PricingConfigResponse:
    return PricingConfigResponse(
        default_timezone=config.default_timezone,
        default_hourly_rate=config.default_hourly_rate,
        priority_ranges=config.priority_ranges,
        updated_at=config.updated_at,
    )


@router.post("/calculate", response_model=PricingResultResponse)
async def calculate(
    request: PricingCalculateRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Calculate the price of a booking.

    Ratesheets, defaults and the timezone are resolved from the hierarchy of
    the sub-location (or of level/entityId when given).
    """
    if request.sub_location_id is not None:
        result = await calculate_pricing(
            db,
            request.sub_location_id,
            request.start_date_time,
            request.end_date_time,
            timezone=request.timezone,
            event_id=request.event_id,
            live_surge=request.live_surge,
            require_surge=request.require_surge,
        )
    else:
        result = await PricingService.calculate_for_entity(
            db,
            request.level,
            request.entity_id,
            request.start_date_time,
            request.end_date_time,
            timezone=request.timezone,
            event_id=request.event_id,
            live_surge=request.live_surge,
            require_surge=request.require_surge,
        )
    return PricingResultResponse.from_result(result)


@router.post("/quote", response_model=PricingResultResponse)
async def quote(request: QuoteRequest):
    """
    Price a booking from ratesheets and default rates sent in the request.

    Nothing is read from or written to the database.
    """
    result = calculate_price(
        request.to_context(request.timezone or settings.default_timezone),
        [ratesheet.to_rule() for ratesheet in request.ratesheets],
        request.default_rates.to_defaults(),
        surge_configs=[config.to_spec() for config in request.surge_configs],
        surge_params=SurgeParams.from_settings(),
        require_surge=request.require_surge,
        currency=request.currency or settings.default_currency,
        surge_priority_base=settings.surge_priority_base,
    )
    return PricingResultResponse.from_result(result)


@router.get("/timezone/{sub_location_id}", response_model=TimezoneResponse)
async def get_timezone(
    sub_location_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Resolve the timezone a sub-location is priced in, and where it came from."""
    timezone, source = await PricingService.resolve_timezone_for_sub_location(db, sub_location_id)
    return TimezoneResponse(sub_location_id=sub_location_id, timezone=timezone, source=source)


@router.get("/config", response_model=PricingConfigResponse)
async def get_config(db: AsyncSession = Depends(get_db)):
    config = await get_or_create_pricing_config(db)
    return _config_response(config)


@router.put("/config", response_model=PricingConfigResponse)
async def update_config(
    update: PricingConfigUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Update the system timezone, fallback rate or priority ranges."""
    config = await get_or_create_pricing_config(db)
    changes = update.model_dump(exclude_unset=True, exclude={"updated_by"})

    if changes.get("default_timezone"):
        load_timezone(changes["default_timezone"])
    if update.priority_ranges is not None:
        ranges = dict(config.priority_ranges)
        ranges.update({level.value: bounds for level, bounds in update.priority_ranges.items()})
        changes["priority_ranges"] = ranges

    old_value = _config_response(config).model_dump(by_alias=True, mode="json", exclude={"updated_at"})
    for field, value in changes.items():
        if value is not None or field == "default_hourly_rate":
            setattr(config, field, value)

    await log_event(
        db,
        action=AuditAction.PRICING_CONFIG_UPDATED,
        entity_type="PricingConfig",
        entity_id=config.id,
        actor=update.updated_by,
        old_value=old_value,
        new_value=_config_response(config).model_dump(by_alias=True, mode="json", exclude={"updated_at"}),
        commit=False,
    )
    await db.commit()
    await db.refresh(config)
    return _config_response(config)
