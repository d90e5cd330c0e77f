"""
Surge pricing Pydantic schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from venue_pricing.app.domain.pricing.types import ensure_utc
from venue_pricing.app.models.surge_config import SurgeConfig
from venue_pricing.app.schemas.ratesheet import (
    AppliesToSchema,
    CamelModel,
    RatesheetResponse,
    TimeWindowSchema,
    inclusive_end_of_day,
    migrate_legacy_scope,
)


class DemandSupplyParams(CamelModel):
    current_demand: float = Field(..., ge=0)
    current_supply: float = Field(..., ge=0)
    historical_avg_pressure: float = Field(..., gt=0)


class SurgeParamsSchema(CamelModel):
    """Overrides of the configured surge constants; omitted values use settings."""
    alpha: Optional[float] = Field(None, ge=0)
    min_multiplier: Optional[float] = Field(None, gt=0)
    max_multiplier: Optional[float] = Field(None, gt=0)
    ema_alpha: Optional[float] = Field(None, ge=0, le=1)


class SurgeConfigCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    applies_to: AppliesToSchema
    priority: int = Field(0, ge=0)
    demand_supply_params: DemandSupplyParams
    surge_params: SurgeParamsSchema = SurgeParamsSchema()
    time_windows: List[TimeWindowSchema] = []
    effective_from: datetime
    effective_to: Optional[datetime] = None
    surge_duration_hours: Optional[float] = Field(None, gt=0)
    created_by: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="before")
    @classmethod
    def migrate_scope(cls, data):
        return migrate_legacy_scope(data)

    @field_validator("effective_to", mode="before")
    @classmethod
    def date_only_end(cls, value):
        return inclusive_end_of_day(value)

    @model_validator(mode="after")
    def check_range(self):
        if self.effective_to is not None and ensure_utc(self.effective_to) < ensure_utc(self.effective_from):
            raise ValueError("effectiveTo must not be before effectiveFrom")
        return self


class SurgeConfigResponse(CamelModel):
    id: int
    name: str
    description: Optional[str]
    applies_to: AppliesToSchema
    priority: int
    demand_supply_params: Dict[str, Any]
    surge_params: Dict[str, Any]
    time_windows: List[Dict[str, Any]]
    effective_from: datetime
    effective_to: Optional[datetime]
    surge_duration_hours: Optional[float]
    is_active: bool
    materialized_ratesheet_id: Optional[int]
    last_materialized: Optional[datetime]

    @classmethod
    def from_model(cls, config: SurgeConfig) -> "SurgeConfigResponse":
        return cls(
            id=config.id,
            name=config.name,
            description=config.description,
            applies_to=AppliesToSchema(level=config.applies_to_level, entity_id=config.applies_to_entity_id),
            priority=config.priority,
            demand_supply_params=config.demand_supply_params or {},
            surge_params=config.surge_params or {},
            time_windows=config.time_windows or [],
            effective_from=ensure_utc(config.effective_from),
            effective_to=ensure_utc(config.effective_to) if config.effective_to else None,
            surge_duration_hours=config.surge_duration_hours,
            is_active=config.is_active,
            materialized_ratesheet_id=config.materialized_ratesheet_id,
            last_materialized=ensure_utc(config.last_materialized) if config.last_materialized else None,
        )


class SurgeConfigListResponse(CamelModel):
    configs: List[SurgeConfigResponse]
    total: int


class SurgeCalculateRequest(CamelModel):
    """Ad-hoc multiplier calculation; nothing is persisted."""
    demand: float
    supply: float
    historical_avg_pressure: float
    alpha: Optional[float] = None
    min_multiplier: Optional[float] = None
    max_multiplier: Optional[float] = None
    ema_alpha: Optional[float] = None
    previous_smoothed_pressure: Optional[float] = None


class SurgeCalculateResponse(CamelModel):
    multiplier: float
    pressure: float
    normalized_pressure: float
    smoothed_pressure: float
    raw_factor: Optional[float]  # None when demand is zero (unbounded below)
    alpha: float
    min_multiplier: float
    max_multiplier: float


class MaterializeRequest(CamelModel):
    requested_by: Optional[str] = Field(None, max_length=100)


class RecalculateResponse(CamelModel):
    old_multiplier: float
    new_multiplier: float
    ratesheet: RatesheetResponse


class ArchiveResponse(CamelModel):
    success: bool
    ratesheet_ids: List[int] = []
