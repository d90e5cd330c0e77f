"""
Pricing domain value objects.

Plain dataclasses shared by the pure engine components. They carry no
database or HTTP concerns; persistence rows and request payloads are
mapped into them at the edges.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from venue_pricing.app.core.exceptions import ValidationError
from venue_pricing.app.models.enums import (
    ApprovalStatus,
    ConflictResolution,
    DayOfWeek,
    EntityLevel,
    RatesheetType,
    RecurrencePattern,
    WindowType,
)

# Legacy documents carried the scope as bare id fields
LEGACY_ID_FIELDS = (
    (EntityLevel.SUBLOCATION, "subLocationId"),
    (EntityLevel.LOCATION, "locationId"),
    (EntityLevel.CUSTOMER, "customerId"),
)


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class AppliesTo:
    """Hierarchy scope of a ratesheet or surge config."""
    level: EntityLevel
    entity_id: int

    @classmethod
    def from_legacy(cls, doc: Mapping[str, Any]) -> Optional["AppliesTo"]:
        """
        Map any stored scope shape into the single tagged variant.

        Accepts {"appliesTo": {"level", "entityId"}}, the {"layer", "entityId"}
        shape, and bare customerId/locationId/subLocationId fields (the most
        specific present id wins). Returns None when no scope is present.
        """
        applies_to = doc.get("appliesTo")
        if isinstance(applies_to, Mapping) and applies_to.get("level"):
            return cls(EntityLevel(applies_to["level"]), int(applies_to["entityId"]))

        if doc.get("layer") and doc.get("entityId") is not None:
            return cls(EntityLevel(doc["layer"]), int(doc["entityId"]))

        for level, key in LEGACY_ID_FIELDS:
            if doc.get(key) is not None:
                return cls(level, int(doc[key]))
        return None

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "AppliesTo":
        applies_to = cls.from_legacy(doc)
        if applies_to is None:
            raise ValidationError("Document has no appliesTo scope", details={"fields": sorted(doc.keys())})
        return applies_to

    def to_document(self) -> Dict[str, Any]:
        return {"level": self.level.value, "entityId": self.entity_id}


@dataclass(frozen=True)
class TimeWindow:
    """
    A priced window of a ratesheet.

    Absolute windows use startTime/endTime (HH:mm, local to the booking
    timezone, wrapping past midnight when endTime <= startTime).
    Duration-relative windows use startMinute/endMinute from booking start.
    """
    price_per_hour: float
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    start_minute: Optional[int] = None
    end_minute: Optional[int] = None
    window_type: Optional[WindowType] = None
    days_of_week: Tuple[DayOfWeek, ...] = ()

    @property
    def is_duration_relative(self) -> bool:
        if self.window_type is not None:
            return self.window_type == WindowType.DURATION_BASED
        return self.start_minute is not None and self.end_minute is not None

    def describe(self, unit: str = "/hr") -> str:
        if self.is_duration_relative:
            span = f"+{self.start_minute}min - +{self.end_minute}min"
        else:
            span = f"{self.start_time or '00:00'} - {self.end_time or '24:00'}"
        if unit == "x":
            return f"{span} @ {self.price_per_hour:g}x"
        return f"{span} @ ${self.price_per_hour:g}{unit}"

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "TimeWindow":
        window_type = doc.get("windowType")
        return cls(
            price_per_hour=float(doc["pricePerHour"]),
            start_time=doc.get("startTime") or None,
            end_time=doc.get("endTime") or None,
            start_minute=doc.get("startMinute"),
            end_minute=doc.get("endMinute"),
            window_type=WindowType(window_type) if window_type else None,
            days_of_week=tuple(DayOfWeek(day) for day in doc.get("daysOfWeek") or ()),
        )


@dataclass(frozen=True)
class DurationRule:
    """Flat price for a block of exactly duration_hours."""
    duration_hours: float
    total_price: float
    description: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "DurationRule":
        return cls(
            duration_hours=float(doc["durationHours"]),
            total_price=float(doc["totalPrice"]),
            description=doc.get("description"),
        )


@dataclass(frozen=True)
class Recurrence:
    """
    Calendar days on which a ratesheet is in force.

    WEEKLY runs on days_of_week and MONTHLY on day_of_month. NONE, DAILY and
    YEARLY run every day; YEARLY ratesheets are bounded by their effective
    range instead.
    """
    pattern: RecurrencePattern = RecurrencePattern.NONE
    days_of_week: Tuple[DayOfWeek, ...] = ()
    day_of_month: Optional[int] = None

    def matches(self, day: date) -> bool:
        if self.pattern == RecurrencePattern.WEEKLY:
            return list(DayOfWeek)[day.weekday()] in self.days_of_week
        if self.pattern == RecurrencePattern.MONTHLY:
            return day.day == self.day_of_month
        return True

    @classmethod
    def from_document(cls, doc: Optional[Mapping[str, Any]]) -> Optional["Recurrence"]:
        if not doc or not doc.get("pattern"):
            return None
        return cls(
            pattern=RecurrencePattern(doc["pattern"]),
            days_of_week=tuple(DayOfWeek(day) for day in doc.get("daysOfWeek") or ()),
            day_of_month=doc.get("dayOfMonth"),
        )


@dataclass(frozen=True)
class RatesheetRule:
    """Engine view of a ratesheet (or of a surge layer)."""
    id: Optional[int]
    name: str
    type: RatesheetType
    applies_to: AppliesTo
    effective_from: datetime
    effective_to: Optional[datetime] = None
    priority: Optional[int] = None
    conflict_resolution: ConflictResolution = ConflictResolution.PRIORITY
    time_windows: Tuple[TimeWindow, ...] = ()
    duration_rules: Tuple[DurationRule, ...] = ()
    is_active: bool = True
    approval_status: ApprovalStatus = ApprovalStatus.DRAFT
    recurrence: Optional[Recurrence] = None

    @property
    def is_surge(self) -> bool:
        return self.type == RatesheetType.SURGE_MULTIPLIER


@dataclass(frozen=True)
class SurgeConfigSpec:
    """Live surge configuration, turned into a layer at pricing time."""
    id: Optional[int]
    name: str
    applies_to: AppliesTo
    current_demand: float
    current_supply: float
    historical_avg_pressure: float
    effective_from: datetime
    effective_to: Optional[datetime] = None
    priority: int = 0
    time_windows: Tuple[Mapping[str, Any], ...] = ()
    surge_params: Optional[Mapping[str, Any]] = None
    is_active: bool = True


@dataclass(frozen=True)
class PricingContext:
    """Booking being priced, with the ids of every hierarchy level it sits in."""
    start_date_time: datetime
    end_date_time: datetime
    timezone: str
    customer_id: Optional[int] = None
    location_id: Optional[int] = None
    sub_location_id: Optional[int] = None
    event_id: Optional[int] = None

    def entity_id_for(self, level: EntityLevel) -> Optional[int]:
        return {
            EntityLevel.CUSTOMER: self.customer_id,
            EntityLevel.LOCATION: self.location_id,
            EntityLevel.SUBLOCATION: self.sub_location_id,
            EntityLevel.EVENT: self.event_id,
        }[level]


@dataclass(frozen=True)
class DefaultRates:
    """Default hourly rates along the fallback chain."""
    sub_location: Optional[float] = None
    location: Optional[float] = None
    customer: Optional[float] = None
    system: Optional[float] = None


@dataclass(frozen=True)
class Coverage:
    """A sub-interval of the booking during which a rule is in force."""
    rule: RatesheetRule
    start: datetime
    end: datetime
    price_per_hour: float
    label: str
    block_price: Optional[float] = None  # flat price of a matched duration rule

    def covers(self, start: datetime, end: datetime) -> bool:
        return self.start <= start and self.end >= end


@dataclass
class LineItem:
    start_date_time: datetime
    end_date_time: datetime
    hours: float
    price_per_hour: float
    subtotal: float
    source: str
    ratesheet_id: Optional[int]
    ratesheet_name: str
    applied_rule: str
    total_price: Optional[float] = None  # package price at this segment's rate, surge included
    surge_multiplier: Optional[float] = None
    surge_ratesheet_id: Optional[int] = None


@dataclass
class DecisionEntry:
    start_date_time: datetime
    end_date_time: datetime
    candidates: List[str]
    winner: str
    reason: str
    rejected: List[str] = field(default_factory=list)


@dataclass
class PricingResult:
    total_price: float
    currency: str
    timezone: str
    breakdown: List[LineItem] = field(default_factory=list)
    decision_log: List[DecisionEntry] = field(default_factory=list)
