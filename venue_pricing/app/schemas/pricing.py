"""
Pricing Pydantic schemas.

Request and response models for price calculation, quotes and the system
pricing config.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field, model_validator

from venue_pricing.app.domain.pricing.types import (
    AppliesTo,
    DefaultRates,
    DurationRule,
    PricingContext,
    PricingResult,
    RatesheetRule,
    Recurrence,
    SurgeConfigSpec,
    TimeWindow,
    ensure_utc,
)
from venue_pricing.app.models.enums import ApprovalStatus, EntityLevel, RatesheetType
from venue_pricing.app.schemas.ratesheet import CamelModel, RatesheetCreate
from venue_pricing.app.schemas.surge import SurgeConfigCreate


class PricingCalculateRequest(CamelModel):
    """Price a booking on a persisted hierarchy entity (a sub-location unless told otherwise)."""
    sub_location_id: Optional[int] = Field(None, ge=1)
    level: Optional[EntityLevel] = None
    entity_id: Optional[int] = Field(None, ge=1)
    event_id: Optional[int] = Field(None, ge=1)
    start_date_time: datetime
    end_date_time: datetime
    timezone: Optional[str] = None
    live_surge: bool = False
    require_surge: bool = False

    @model_validator(mode="after")
    def check_target(self):
        if self.sub_location_id is None and (self.level is None or self.entity_id is None):
            raise ValueError("Provide subLocationId, or level and entityId")
        return self


class QuoteRatesheet(RatesheetCreate):
    """Inline ratesheet for a quote; treated as approved unless stated otherwise."""
    id: Optional[int] = None
    is_active: bool = True
    approval_status: ApprovalStatus = ApprovalStatus.APPROVED

    @model_validator(mode="after")
    def check_rules(self):
        # Quotes may also carry already materialized surge ratesheets
        if self.type == RatesheetType.DURATION_BASED:
            if not self.duration_rules:
                raise ValueError("DURATION_BASED ratesheets need at least one duration rule")
        elif not self.time_windows:
            raise ValueError(f"{self.type.value} ratesheets need at least one time window")
        if self.effective_to is not None and ensure_utc(self.effective_to) < ensure_utc(self.effective_from):
            raise ValueError("effectiveTo must not be before effectiveFrom")
        return self

    def to_rule(self) -> RatesheetRule:
        return RatesheetRule(
            id=self.id,
            name=self.name,
            type=self.type,
            applies_to=AppliesTo(self.applies_to.level, self.applies_to.entity_id),
            effective_from=ensure_utc(self.effective_from),
            effective_to=ensure_utc(self.effective_to) if self.effective_to else None,
            priority=self.priority,
            conflict_resolution=self.conflict_resolution,
            time_windows=tuple(TimeWindow.from_document(w.to_document()) for w in self.time_windows),
            duration_rules=tuple(DurationRule.from_document(r.to_document()) for r in self.duration_rules),
            is_active=self.is_active,
            approval_status=self.approval_status,
            recurrence=Recurrence.from_document(self.recurrence.to_document()) if self.recurrence else None,
        )


class QuoteSurgeConfig(SurgeConfigCreate):
    id: Optional[int] = None
    is_active: bool = True

    def to_spec(self) -> SurgeConfigSpec:
        return SurgeConfigSpec(
            id=self.id,
            name=self.name,
            applies_to=AppliesTo(self.applies_to.level, self.applies_to.entity_id),
            current_demand=self.demand_supply_params.current_demand,
            current_supply=self.demand_supply_params.current_supply,
            historical_avg_pressure=self.demand_supply_params.historical_avg_pressure,
            effective_from=ensure_utc(self.effective_from),
            effective_to=ensure_utc(self.effective_to) if self.effective_to else None,
            priority=self.priority,
            time_windows=tuple(w.to_document() for w in self.time_windows),
            surge_params=self.surge_params.model_dump(by_alias=True, exclude_none=True),
            is_active=self.is_active,
        )


class DefaultRatesSchema(CamelModel):
    sub_location: Optional[float] = Field(None, ge=0)
    location: Optional[float] = Field(None, ge=0)
    customer: Optional[float] = Field(None, ge=0)
    system: Optional[float] = Field(None, ge=0)

    def to_defaults(self) -> DefaultRates:
        return DefaultRates(
            sub_location=self.sub_location,
            location=self.location,
            customer=self.customer,
            system=self.system,
        )


class QuoteRequest(CamelModel):
    """Self-contained pricing request: nothing is read from the database."""
    start_date_time: datetime
    end_date_time: datetime
    timezone: Optional[str] = None
    customer_id: Optional[int] = None
    location_id: Optional[int] = None
    sub_location_id: Optional[int] = None
    event_id: Optional[int] = None
    ratesheets: List[QuoteRatesheet] = []
    default_rates: DefaultRatesSchema = DefaultRatesSchema()
    surge_configs: List[QuoteSurgeConfig] = []
    require_surge: bool = False
    currency: Optional[str] = None

    def to_context(self, timezone: str) -> PricingContext:
        return PricingContext(
            start_date_time=self.start_date_time,
            end_date_time=self.end_date_time,
            timezone=timezone,
            customer_id=self.customer_id,
            location_id=self.location_id,
            sub_location_id=self.sub_location_id,
            event_id=self.event_id,
        )


class LineItemResponse(CamelModel):
    start_date_time: datetime
    end_date_time: datetime
    hours: float
    price_per_hour: float
    subtotal: float
    total_price: Optional[float] = None
    ratesheet_id: Optional[int] = None
    ratesheet_name: str
    applied_rule: str
    source: str
    surge_multiplier: Optional[float] = None
    surge_ratesheet_id: Optional[int] = None


class DecisionEntryResponse(CamelModel):
    start_date_time: datetime
    end_date_time: datetime
    candidates: List[str]
    winner: str
    reason: str
    rejected: List[str]


class PricingResultResponse(CamelModel):
    total_price: float
    currency: str
    timezone: str
    breakdown: List[LineItemResponse]
    decision_log: List[DecisionEntryResponse]

    @classmethod
    def from_result(cls, result: PricingResult) -> "PricingResultResponse":
        return cls(
            total_price=result.total_price,
            currency=result.currency,
            timezone=result.timezone,
            breakdown=[
                LineItemResponse(
                    start_date_time=item.start_date_time,
                    end_date_time=item.end_date_time,
                    hours=item.hours,
                    price_per_hour=item.price_per_hour,
                    subtotal=item.subtotal,
                    total_price=item.total_price,
                    ratesheet_id=item.ratesheet_id,
                    ratesheet_name=item.ratesheet_name,
                    applied_rule=item.applied_rule,
                    source=item.source,
                    surge_multiplier=item.surge_multiplier,
                    surge_ratesheet_id=item.surge_ratesheet_id,
                )
                for item in result.breakdown
            ],
            decision_log=[
                DecisionEntryResponse(
                    start_date_time=entry.start_date_time,
                    end_date_time=entry.end_date_time,
                    candidates=entry.candidates,
                    winner=entry.winner,
                    reason=entry.reason,
                    rejected=entry.rejected,
                )
                for entry in result.decision_log
            ],
        )


class TimezoneResponse(CamelModel):
    sub_location_id: int
    timezone: str
    source: str


class PricingConfigResponse(CamelModel):
    default_timezone: str
    default_hourly_rate: Optional[float]
    priority_ranges: Dict[str, List[int]]
    updated_at: Optional[datetime] = None


class PricingConfigUpdate(CamelModel):
    default_timezone: Optional[str] = None
    default_hourly_rate: Optional[float] = Field(None, ge=0)
    priority_ranges: Optional[Dict[EntityLevel, List[int]]] = None
    updated_by: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def check_ranges(self):
        for level, bounds in (self.priority_ranges or {}).items():
            if len(bounds) != 2 or bounds[0] > bounds[1]:
                raise ValueError(f"Priority range for {level.value} must be [min, max]")
        return self
