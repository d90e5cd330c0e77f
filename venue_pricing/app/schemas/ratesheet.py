"""
Ratesheet Pydantic schemas.

Wire shapes use camelCase field names; snake_case names are accepted too.
Legacy documents that carry their scope as layer/entityId or bare
customerId/locationId/subLocationId are migrated into appliesTo on input.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from venue_pricing.app.domain.pricing.types import AppliesTo, ensure_utc
from venue_pricing.app.models.enums import (
    ApprovalStatus,
    ConflictResolution,
    DayOfWeek,
    EntityLevel,
    RatesheetType,
    RecurrencePattern,
    WindowType,
)
from venue_pricing.app.models.ratesheet import Ratesheet

CLOCK_PATTERN = re.compile(r"^(([01]\d|2[0-3]):[0-5]\d|24:00)$")
DATE_ONLY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def inclusive_end_of_day(value: Any) -> Any:
    """
    Read a date-only effectiveTo as the end of that (UTC) day.

    Full timestamps are kept as the exact instant the ratesheet stops.
    """
    if isinstance(value, str) and DATE_ONLY_PATTERN.match(value):
        value = date.fromisoformat(value)
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value + timedelta(days=1), time(0), tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class AppliesToSchema(CamelModel):
    level: EntityLevel
    entity_id: int = Field(..., ge=1)


class TimeWindowSchema(CamelModel):
    """Absolute (startTime/endTime) or duration-relative (startMinute/endMinute) window."""
    price_per_hour: float = Field(..., ge=0)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    start_minute: Optional[int] = Field(None, ge=0)
    end_minute: Optional[int] = Field(None, ge=0)
    window_type: Optional[WindowType] = None
    days_of_week: Optional[List[DayOfWeek]] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def blank_clock_is_none(cls, value):
        return value or None

    @field_validator("start_time", "end_time")
    @classmethod
    def check_clock(cls, value):
        if value is not None and not CLOCK_PATTERN.match(value):
            raise ValueError(f"'{value}' is not an HH:mm clock time")
        return value

    @model_validator(mode="after")
    def check_duration_window(self):
        relative = self.window_type == WindowType.DURATION_BASED or (
            self.window_type is None and self.start_minute is not None and self.end_minute is not None
        )
        if relative:
            if self.start_minute is None or self.end_minute is None:
                raise ValueError("Duration-based windows need startMinute and endMinute")
            if self.end_minute <= self.start_minute:
                raise ValueError("endMinute must be greater than startMinute")
        return self

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class DurationRuleSchema(CamelModel):
    duration_hours: float = Field(..., gt=0)
    total_price: float = Field(..., ge=0)
    description: Optional[str] = Field(None, max_length=500)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class RecurrenceSchema(CamelModel):
    pattern: RecurrencePattern = RecurrencePattern.NONE
    days_of_week: Optional[List[DayOfWeek]] = None
    day_of_month: Optional[int] = Field(None, ge=1, le=31)

    @model_validator(mode="after")
    def check_pattern(self):
        if self.pattern == RecurrencePattern.WEEKLY and not self.days_of_week:
            raise ValueError("WEEKLY recurrence needs daysOfWeek")
        if self.pattern == RecurrencePattern.MONTHLY and self.day_of_month is None:
            raise ValueError("MONTHLY recurrence needs dayOfMonth")
        return self

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def migrate_legacy_scope(data: Any) -> Any:
    """Fill appliesTo from legacy scope fields when it is missing."""
    if not isinstance(data, dict) or data.get("appliesTo") or data.get("applies_to"):
        return data
    applies_to = AppliesTo.from_legacy(data)
    if applies_to is None:
        return data
    migrated = {k: v for k, v in data.items() if k not in ("layer", "entityId", "customerId", "locationId", "subLocationId")}
    migrated["appliesTo"] = applies_to.to_document()
    return migrated


class RatesheetCreate(CamelModel):
    """Schema for creating a ratesheet (always starts as DRAFT)."""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    type: RatesheetType = RatesheetType.TIMING_BASED
    applies_to: AppliesToSchema
    priority: Optional[int] = None
    conflict_resolution: ConflictResolution = ConflictResolution.PRIORITY
    effective_from: datetime
    effective_to: Optional[datetime] = None
    time_windows: List[TimeWindowSchema] = []
    duration_rules: List[DurationRuleSchema] = []
    recurrence: Optional[RecurrenceSchema] = None
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
    def check_rules(self):
        if self.type == RatesheetType.SURGE_MULTIPLIER:
            raise ValueError("Surge ratesheets are created by materializing a surge config")
        if self.type == RatesheetType.TIMING_BASED and not self.time_windows:
            raise ValueError("TIMING_BASED ratesheets need at least one time window")
        if self.type == RatesheetType.DURATION_BASED and not self.duration_rules:
            raise ValueError("DURATION_BASED ratesheets need at least one duration rule")
        if self.effective_to is not None and ensure_utc(self.effective_to) < ensure_utc(self.effective_from):
            raise ValueError("effectiveTo must not be before effectiveFrom")
        return self


class RatesheetUpdate(CamelModel):
    """Schema for updating a ratesheet. Only the fields sent are changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    priority: Optional[int] = None
    conflict_resolution: Optional[ConflictResolution] = None
    effective_from: Optional[datetime] = None
    effective_to: Optional[datetime] = None
    time_windows: Optional[List[TimeWindowSchema]] = None
    duration_rules: Optional[List[DurationRuleSchema]] = None
    recurrence: Optional[RecurrenceSchema] = None
    is_active: Optional[bool] = None
    updated_by: Optional[str] = Field(None, max_length=100)

    @field_validator("effective_to", mode="before")
    @classmethod
    def date_only_end(cls, value):
        return inclusive_end_of_day(value)


class SubmitRequest(CamelModel):
    submitted_by: Optional[str] = Field(None, max_length=100)


class ApproveRequest(CamelModel):
    approved_by: str = Field(..., min_length=1, max_length=100)


class RejectRequest(CamelModel):
    rejected_by: Optional[str] = Field(None, max_length=100)
    reason: str = Field(..., min_length=1, max_length=500)


class RatesheetResponse(CamelModel):
    """Schema for ratesheet response."""
    id: int
    name: str
    description: Optional[str]
    type: RatesheetType
    applies_to: AppliesToSchema
    priority: Optional[int]
    conflict_resolution: ConflictResolution
    effective_from: datetime
    effective_to: Optional[datetime]
    time_windows: List[Dict[str, Any]]
    duration_rules: List[Dict[str, Any]]
    recurrence: Optional[Dict[str, Any]]
    is_active: bool
    approval_status: ApprovalStatus
    approved_by: Optional[str]
    approved_at: Optional[datetime]
    rejection_reason: Optional[str]
    surge_config_id: Optional[int]
    surge_multiplier_snapshot: Optional[float]
    demand_supply_snapshot: Optional[Dict[str, Any]]
    created_by: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_model(cls, ratesheet: Ratesheet) -> "RatesheetResponse":
        def utc(value):
            return ensure_utc(value) if value else None

        return cls(
            id=ratesheet.id,
            name=ratesheet.name,
            description=ratesheet.description,
            type=ratesheet.type,
            applies_to=AppliesToSchema(level=ratesheet.applies_to_level, entity_id=ratesheet.applies_to_entity_id),
            priority=ratesheet.priority,
            conflict_resolution=ratesheet.conflict_resolution,
            effective_from=utc(ratesheet.effective_from),
            effective_to=utc(ratesheet.effective_to),
            time_windows=ratesheet.time_windows or [],
            duration_rules=ratesheet.duration_rules or [],
            recurrence=ratesheet.recurrence,
            is_active=ratesheet.is_active,
            approval_status=ratesheet.approval_status,
            approved_by=ratesheet.approved_by,
            approved_at=utc(ratesheet.approved_at),
            rejection_reason=ratesheet.rejection_reason,
            surge_config_id=ratesheet.surge_config_id,
            surge_multiplier_snapshot=ratesheet.surge_multiplier_snapshot,
            demand_supply_snapshot=ratesheet.demand_supply_snapshot,
            created_by=ratesheet.created_by,
            created_at=utc(ratesheet.created_at),
            updated_at=utc(ratesheet.updated_at),
        )


class RatesheetListResponse(CamelModel):
    """Schema for paginated ratesheet list."""
    ratesheets: List[RatesheetResponse]
    total: int
    page: int
    page_size: int
