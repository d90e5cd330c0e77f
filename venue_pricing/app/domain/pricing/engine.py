"""
Pricing Orchestrator (pure).

Prices a booking from ratesheets and default rates that have already been
fetched. No I/O: identical inputs always produce identical results.

Flow:
1. Validate the interval and localize windows to the booking timezone
2. Filter ratesheets and turn live surge configs into surge layers
3. Compute each rule's coverage and partition the booking at every boundary
4. Per segment: resolve a winner or fall back to the default-rate chain,
   then apply the covering surge layer, if any
5. Concatenate the breakdown and sum the total
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from venue_pricing.app.core.exceptions import SurgeInputError, ValidationError
from venue_pricing.app.domain.pricing.applicability import filter_ratesheets
from venue_pricing.app.domain.pricing.defaults import ResolvedDefault, resolve_default
from venue_pricing.app.domain.pricing.pricing_resolver import PricingResolver, describe_candidate
from venue_pricing.app.domain.pricing.surge import SurgeParams, surge_layer_from_config
from venue_pricing.app.domain.pricing.types import (
    Coverage,
    DecisionEntry,
    DefaultRates,
    LineItem,
    PricingContext,
    PricingResult,
    RatesheetRule,
    SurgeConfigSpec,
    ensure_utc,
)
from venue_pricing.app.domain.pricing.windows import load_timezone, partition, ratesheet_coverage

logger = logging.getLogger(__name__)

SOURCE_RATESHEET = "RATESHEET"
SOURCE_DEFAULT = "DEFAULT_RATE"

DEFAULT_RATE_NAMES = {
    "SUBLOCATION": "SubLocation default rate",
    "LOCATION": "Location default rate",
    "CUSTOMER": "Customer default rate",
    "SYSTEM": "System default rate",
}


def _hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def _covering(coverage: Sequence[Coverage], start: datetime, end: datetime) -> List[Coverage]:
    """Coverage pieces spanning [start, end), keeping the first window of each rule."""
    seen = set()
    result = []
    for piece in coverage:
        if piece.covers(start, end) and id(piece.rule) not in seen:
            seen.add(id(piece.rule))
            result.append(piece)
    return result


def _live_surge_layers(
    surge_configs: Iterable[SurgeConfigSpec],
    params: SurgeParams,
    priority_base: int,
    require_surge: bool,
) -> List[RatesheetRule]:
    layers = []
    for spec in surge_configs:
        try:
            rule, _ = surge_layer_from_config(spec, params, priority_base)
        except SurgeInputError as exc:
            if require_surge:
                raise
            # Surge inputs only disable the surge layer, never the base price
            logger.warning("Skipping surge config %s (%s): %s", spec.id, spec.name, exc.message)
            continue
        layers.append(rule)
    return layers


def calculate_price(
    context: PricingContext,
    candidate_ratesheets: Sequence[RatesheetRule],
    default_rates: DefaultRates,
    surge_configs: Sequence[SurgeConfigSpec] = (),
    surge_params: Optional[SurgeParams] = None,
    require_surge: bool = False,
    currency: str = "USD",
    surge_priority_base: int = 10000,
) -> PricingResult:
    """
    Price [start_date_time, end_date_time) for the entities in context.

    Raises:
        ValidationError: If the interval is empty or inverted, or the timezone is unknown.
        UnresolvableRateError: If a segment has no winner and no default rate.
        SurgeInputError: Only when require_surge is set.
    """
    start = ensure_utc(context.start_date_time)
    end = ensure_utc(context.end_date_time)
    if end <= start:
        raise ValidationError(
            "endDateTime must be after startDateTime",
            details={"startDateTime": start.isoformat(), "endDateTime": end.isoformat()},
        )
    tz = load_timezone(context.timezone)

    eligible = filter_ratesheets(candidate_ratesheets, context)
    live_layers = _live_surge_layers(
        surge_configs, surge_params or SurgeParams(), surge_priority_base, require_surge
    )
    surge_rules = [rule for rule in eligible if rule.is_surge] + filter_ratesheets(live_layers, context)
    base_rules = [rule for rule in eligible if not rule.is_surge]

    base_coverage = [piece for rule in base_rules for piece in ratesheet_coverage(rule, start, end, tz)]
    surge_coverage = [piece for rule in surge_rules for piece in ratesheet_coverage(rule, start, end, tz)]

    boundaries = set()
    for piece in base_coverage + surge_coverage:
        boundaries.add(piece.start)
        boundaries.add(piece.end)
    segments = partition(start, end, boundaries)

    logger.debug(
        "Pricing %s - %s (%s): %d eligible ratesheets, %d surge layers, %d segments",
        start.isoformat(), end.isoformat(), context.timezone,
        len(base_rules), len(surge_rules), len(segments),
    )

    total_hours = _hours(start, end)
    default: Optional[ResolvedDefault] = None
    breakdown: List[LineItem] = []
    decision_log: List[DecisionEntry] = []

    for seg_start, seg_end in segments:
        hours = _hours(seg_start, seg_end)
        resolution = PricingResolver.resolve(_covering(base_coverage, seg_start, seg_end))
        winner = resolution.winner

        if winner is not None:
            price_per_hour = winner.price_per_hour
            if winner.block_price is not None:
                subtotal = winner.block_price * hours / total_hours
            else:
                subtotal = price_per_hour * hours
            item = LineItem(
                start_date_time=seg_start,
                end_date_time=seg_end,
                hours=hours,
                price_per_hour=price_per_hour,
                subtotal=subtotal,
                source=SOURCE_RATESHEET,
                ratesheet_id=winner.rule.id,
                ratesheet_name=winner.rule.name,
                applied_rule=winner.label,
                total_price=winner.block_price,
            )
            winner_text = describe_candidate(winner)
            reason = resolution.reason
        else:
            if default is None:
                default = resolve_default(default_rates)
            item = LineItem(
                start_date_time=seg_start,
                end_date_time=seg_end,
                hours=hours,
                price_per_hour=default.rate,
                subtotal=default.rate * hours,
                source=SOURCE_DEFAULT,
                ratesheet_id=None,
                ratesheet_name=DEFAULT_RATE_NAMES[default.source],
                applied_rule=f"${default.rate:g}/hr",
            )
            winner_text = f"{DEFAULT_RATE_NAMES[default.source]} ${default.rate:g}/hr"
            reason = f"{resolution.reason}; fell back to {default.source} default"

        surge = PricingResolver.select_surge_layer(_covering(surge_coverage, seg_start, seg_end))
        if surge is not None:
            multiplier = surge.price_per_hour
            item.price_per_hour *= multiplier
            item.subtotal *= multiplier
            if item.total_price is not None:
                item.total_price = round(item.total_price * multiplier, 2)
            item.surge_multiplier = multiplier
            item.surge_ratesheet_id = surge.rule.id
            reason = f"{reason}; surge {multiplier:.3f}x from {surge.rule.name}"

        item.subtotal = round(item.subtotal, 2)
        breakdown.append(item)
        decision_log.append(DecisionEntry(
            start_date_time=seg_start,
            end_date_time=seg_end,
            candidates=[describe_candidate(c) for c in resolution.ranked],
            winner=winner_text,
            reason=reason,
            rejected=[describe_candidate(c) for c in resolution.rejected],
        ))

    total_price = round(sum(item.subtotal for item in breakdown), 2)
    logger.info(
        "Priced %.2fh over %d segments: %.2f %s",
        total_hours, len(breakdown), total_price, currency,
    )
    return PricingResult(
        total_price=total_price,
        currency=currency,
        timezone=context.timezone,
        breakdown=breakdown,
        decision_log=decision_log,
    )
