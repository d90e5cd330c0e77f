"""
Pricing Service (Domain Logic).

Persistence adapter around the pure engine: resolves the hierarchy of the
priced entity, fetches candidate ratesheets and defaults, then delegates
to calculate_price. Read-only apart from creating the PricingConfig row
on first use.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_pricing.app.core.config import settings
from venue_pricing.app.core.exceptions import NotFoundError, ValidationError
from venue_pricing.app.domain.pricing.applicability import overlaps_effective_range
from venue_pricing.app.domain.pricing.defaults import resolve_timezone
from venue_pricing.app.domain.pricing.engine import calculate_price
from venue_pricing.app.domain.pricing.surge import SurgeParams
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
from venue_pricing.app.domain.pricing.windows import load_timezone
from venue_pricing.app.models.customer import Customer
from venue_pricing.app.models.enums import ApprovalStatus, EntityLevel
from venue_pricing.app.models.event import Event
from venue_pricing.app.models.location import Location
from venue_pricing.app.models.pricing_config import PricingConfig
from venue_pricing.app.models.ratesheet import Ratesheet
from venue_pricing.app.models.sub_location import SubLocation
from venue_pricing.app.models.surge_config import SurgeConfig

logger = logging.getLogger(__name__)


async def get_or_create_pricing_config(db: AsyncSession) -> PricingConfig:
    """Return the system pricing config, seeding it from settings on first use."""
    result = await db.execute(select(PricingConfig).order_by(PricingConfig.id).limit(1))
    config = result.scalar_one_or_none()
    if config:
        return config

    config = PricingConfig(
        default_timezone=settings.default_timezone,
        default_hourly_rate=settings.fallback_hourly_rate,
        priority_ranges=dict(settings.priority_ranges),
    )
    db.add(config)
    await db.commit()
    await db.refresh(config)
    logger.info("Created pricing config from settings (timezone=%s)", config.default_timezone)
    return config


def rule_from_model(ratesheet: Ratesheet) -> RatesheetRule:
    return RatesheetRule(
        id=ratesheet.id,
        name=ratesheet.name,
        type=ratesheet.type,
        applies_to=AppliesTo(ratesheet.applies_to_level, ratesheet.applies_to_entity_id),
        effective_from=ensure_utc(ratesheet.effective_from),
        effective_to=ensure_utc(ratesheet.effective_to) if ratesheet.effective_to else None,
        priority=ratesheet.priority,
        conflict_resolution=ratesheet.conflict_resolution,
        time_windows=tuple(TimeWindow.from_document(doc) for doc in ratesheet.time_windows or ()),
        duration_rules=tuple(DurationRule.from_document(doc) for doc in ratesheet.duration_rules or ()),
        is_active=ratesheet.is_active,
        approval_status=ratesheet.approval_status,
        recurrence=Recurrence.from_document(ratesheet.recurrence),
    )


def surge_spec_from_model(config: SurgeConfig) -> SurgeConfigSpec:
    params = config.demand_supply_params or {}
    return SurgeConfigSpec(
        id=config.id,
        name=config.name,
        applies_to=AppliesTo(config.applies_to_level, config.applies_to_entity_id),
        current_demand=params.get("currentDemand"),
        current_supply=params.get("currentSupply"),
        historical_avg_pressure=params.get("historicalAvgPressure"),
        effective_from=ensure_utc(config.effective_from),
        effective_to=ensure_utc(config.effective_to) if config.effective_to else None,
        priority=config.priority or 0,
        time_windows=tuple(config.time_windows or ()),
        surge_params=config.surge_params,
        is_active=config.is_active,
    )


def event_anchor(event: Event) -> Optional[Tuple[EntityLevel, int]]:
    """Most specific hierarchy node an event is attached to."""
    for level, entity_id in (
        (EntityLevel.SUBLOCATION, event.sub_location_id),
        (EntityLevel.LOCATION, event.location_id),
        (EntityLevel.CUSTOMER, event.customer_id),
    ):
        if entity_id:
            return level, entity_id
    return None


@dataclass
class Hierarchy:
    """Resolved ancestors of a priced entity. Levels above the entity are always set."""
    customer: Customer
    location: Optional[Location] = None
    sub_location: Optional[SubLocation] = None
    event: Optional[Event] = None

    def scopes(self) -> List[Tuple[EntityLevel, int]]:
        scopes = [(EntityLevel.CUSTOMER, self.customer.id)]
        if self.location:
            scopes.append((EntityLevel.LOCATION, self.location.id))
        if self.sub_location:
            scopes.append((EntityLevel.SUBLOCATION, self.sub_location.id))
        if self.event:
            scopes.append((EntityLevel.EVENT, self.event.id))
        return scopes


class PricingService:

    @staticmethod
    async def _get(db: AsyncSession, model, entity_id: int, resource: str):
        entity = await db.get(model, entity_id)
        if not entity:
            raise NotFoundError(resource, entity_id)
        return entity

    @staticmethod
    async def resolve_hierarchy(db: AsyncSession, level: EntityLevel, entity_id: int) -> Hierarchy:
        """
        Load the entity and every ancestor.

        Raises:
            NotFoundError: If the entity or any ancestor is missing.
        """
        event = None
        sub_location = None
        location = None

        if level == EntityLevel.EVENT:
            event = await PricingService._get(db, Event, entity_id, "Event")
            anchor = event_anchor(event)
            if anchor is None:
                raise ValidationError("Event is not attached to the hierarchy", details={"eventId": event.id})
            level, entity_id = anchor

        if level == EntityLevel.SUBLOCATION:
            sub_location = await PricingService._get(db, SubLocation, entity_id, "SubLocation")
            level, entity_id = EntityLevel.LOCATION, sub_location.location_id

        if level == EntityLevel.LOCATION:
            location = await PricingService._get(db, Location, entity_id, "Location")
            entity_id = location.customer_id

        customer = await PricingService._get(db, Customer, entity_id, "Customer")
        return Hierarchy(customer=customer, location=location, sub_location=sub_location, event=event)

    @staticmethod
    async def fetch_candidate_ratesheets(
        db: AsyncSession,
        hierarchy: Hierarchy,
        start: datetime,
        end: datetime,
    ) -> List[RatesheetRule]:
        """Active, approved ratesheets of every ancestor overlapping [start, end), in creation order."""
        start, end = ensure_utc(start), ensure_utc(end)
        scope_filter = or_(*(
            and_(Ratesheet.applies_to_level == level, Ratesheet.applies_to_entity_id == entity_id)
            for level, entity_id in hierarchy.scopes()
        ))
        query = select(Ratesheet).where(
            Ratesheet.is_active == True,
            Ratesheet.approval_status == ApprovalStatus.APPROVED,
            Ratesheet.effective_from <= end,
            (Ratesheet.effective_to.is_(None) | (Ratesheet.effective_to >= start)),
            scope_filter,
        ).order_by(Ratesheet.id)

        result = await db.execute(query)
        return [rule_from_model(ratesheet) for ratesheet in result.scalars().all()]

    @staticmethod
    async def fetch_surge_configs(
        db: AsyncSession,
        hierarchy: Hierarchy,
        start: datetime,
        end: datetime,
    ) -> List[SurgeConfigSpec]:
        """Active surge configs of every ancestor that have not been materialized yet."""
        start, end = ensure_utc(start), ensure_utc(end)
        scope_filter = or_(*(
            and_(SurgeConfig.applies_to_level == level, SurgeConfig.applies_to_entity_id == entity_id)
            for level, entity_id in hierarchy.scopes()
        ))
        query = select(SurgeConfig).where(
            SurgeConfig.is_active == True,
            SurgeConfig.materialized_ratesheet_id.is_(None),
            SurgeConfig.effective_from <= end,
            (SurgeConfig.effective_to.is_(None) | (SurgeConfig.effective_to >= start)),
            scope_filter,
        ).order_by(SurgeConfig.id)

        result = await db.execute(query)
        return [surge_spec_from_model(config) for config in result.scalars().all()]

    @staticmethod
    def resolve_timezone(hierarchy: Hierarchy, config: PricingConfig, requested: Optional[str] = None) -> Tuple[str, str]:
        chain = [("REQUEST", requested)]
        if hierarchy.sub_location:
            chain.append(("SUBLOCATION", hierarchy.sub_location.timezone))
        if hierarchy.location:
            chain.append(("LOCATION", hierarchy.location.timezone))
        chain.append(("CUSTOMER", hierarchy.customer.timezone))
        chain.append(("SYSTEM", config.default_timezone))
        return resolve_timezone(chain, settings.default_timezone)

    @staticmethod
    async def resolve_timezone_for_sub_location(db: AsyncSession, sub_location_id: int) -> Tuple[str, str]:
        hierarchy = await PricingService.resolve_hierarchy(db, EntityLevel.SUBLOCATION, sub_location_id)
        config = await get_or_create_pricing_config(db)
        return PricingService.resolve_timezone(hierarchy, config)

    @staticmethod
    async def calculate_for_entity(
        db: AsyncSession,
        level: EntityLevel,
        entity_id: int,
        start: datetime,
        end: datetime,
        timezone: Optional[str] = None,
        event_id: Optional[int] = None,
        live_surge: bool = False,
        require_surge: bool = False,
    ) -> PricingResult:
        """
        Price a booking on any hierarchy entity.

        EVENT ratesheets apply only when the booking names an active event
        whose dates overlap the booking.

        Raises:
            NotFoundError: Missing entity or ancestor.
            ValidationError: Bad interval or timezone, or a sub-location that is
                disabled for pricing.
            UnresolvableRateError: A segment with no ratesheet and no default.
        """
        start, end = ensure_utc(start), ensure_utc(end)
        if end <= start:
            raise ValidationError(
                "endDateTime must be after startDateTime",
                details={"startDateTime": start.isoformat(), "endDateTime": end.isoformat()},
            )
        if timezone:
            load_timezone(timezone)

        hierarchy = await PricingService.resolve_hierarchy(db, level, entity_id)
        sub_location = hierarchy.sub_location
        if sub_location and (not sub_location.is_active or not sub_location.pricing_enabled):
            raise ValidationError(
                "Pricing is not enabled for this sub-location",
                details={"subLocationId": sub_location.id},
            )

        if event_id is not None and hierarchy.event is None:
            event = await PricingService._get(db, Event, event_id, "Event")
            if (
                event.is_active
                and event_anchor(event) in hierarchy.scopes()
                and overlaps_effective_range(event.start_date, event.end_date, start, end)
            ):
                hierarchy.event = event
            else:
                logger.debug("Event %s is inactive, elsewhere or outside the booking, ignoring", event_id)

        config = await get_or_create_pricing_config(db)
        tz_name, tz_source = PricingService.resolve_timezone(hierarchy, config, timezone)

        candidates = await PricingService.fetch_candidate_ratesheets(db, hierarchy, start, end)
        surge_configs = []
        if live_surge:
            surge_configs = await PricingService.fetch_surge_configs(db, hierarchy, start, end)

        context = PricingContext(
            start_date_time=start,
            end_date_time=end,
            timezone=tz_name,
            customer_id=hierarchy.customer.id,
            location_id=hierarchy.location.id if hierarchy.location else None,
            sub_location_id=sub_location.id if sub_location else None,
            event_id=hierarchy.event.id if hierarchy.event else None,
        )
        system_rate = config.default_hourly_rate
        if system_rate is None:
            system_rate = settings.fallback_hourly_rate
        defaults = DefaultRates(
            sub_location=sub_location.default_hourly_rate if sub_location else None,
            location=hierarchy.location.default_hourly_rate if hierarchy.location else None,
            customer=hierarchy.customer.default_hourly_rate,
            system=system_rate,
        )

        logger.debug(
            "Calculating price for %s %s: %d candidates, timezone %s from %s",
            level.value, entity_id, len(candidates), tz_name, tz_source,
        )
        return calculate_price(
            context,
            candidates,
            defaults,
            surge_configs=surge_configs,
            surge_params=SurgeParams.from_settings(),
            require_surge=require_surge,
            currency=settings.default_currency,
            surge_priority_base=settings.surge_priority_base,
        )


async def calculate_pricing(
    db: AsyncSession,
    sub_location_id: int,
    start: datetime,
    end: datetime,
    timezone: Optional[str] = None,
    event_id: Optional[int] = None,
    live_surge: bool = False,
    require_surge: bool = False,
) -> PricingResult:
    """Price a booking of a sub-location."""
    return await PricingService.calculate_for_entity(
        db,
        EntityLevel.SUBLOCATION,
        sub_location_id,
        start,
        end,
        timezone=timezone,
        event_id=event_id,
        live_surge=live_surge,
        require_surge=require_surge,
    )
