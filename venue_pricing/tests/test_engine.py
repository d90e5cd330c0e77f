"""
Unit tests for the pure pricing orchestrator.
"""

from datetime import datetime, timedelta, timezone

import pytest

from venue_pricing.app.core.exceptions import SurgeInputError, UnresolvableRateError, ValidationError
from venue_pricing.app.domain.pricing.engine import calculate_price
from venue_pricing.app.domain.pricing.types import (
    AppliesTo,
    DefaultRates,
    DurationRule,
    PricingContext,
    RatesheetRule,
    SurgeConfigSpec,
    TimeWindow,
)
from venue_pricing.app.models.enums import ApprovalStatus, ConflictResolution, EntityLevel, RatesheetType

SUB = AppliesTo(EntityLevel.SUBLOCATION, 100)
LOC = AppliesTo(EntityLevel.LOCATION, 10)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def context(start, end, tz="UTC", event_id=None):
    return PricingContext(
        start_date_time=start,
        end_date_time=end,
        timezone=tz,
        customer_id=1,
        location_id=10,
        sub_location_id=100,
        event_id=event_id,
    )


def timing(id, windows, applies_to=SUB, **overrides):
    values = dict(
        id=id,
        name=f"Sheet {id}",
        type=RatesheetType.TIMING_BASED,
        applies_to=applies_to,
        effective_from=utc(2026, 1, 1),
        time_windows=tuple(windows),
        approval_status=ApprovalStatus.APPROVED,
    )
    values.update(overrides)
    return RatesheetRule(**values)


def window(price, start=None, end=None):
    return TimeWindow(price_per_hour=price, start_time=start, end_time=end)


def assert_partitions(result, start, end):
    items = result.breakdown
    assert items[0].start_date_time == start
    assert items[-1].end_date_time == end
    for previous, current in zip(items, items[1:]):
        assert previous.end_date_time == current.start_date_time
    assert all(item.start_date_time < item.end_date_time for item in items)


def test_partial_overlap_falls_through_to_default():
    # 09:00-14:00 Chicago is 15:00-20:00 UTC in January
    start, end = utc(2026, 1, 13, 14), utc(2026, 1, 13, 19)
    sheet = timing(1, [window(20.0, "09:00", "14:00")])

    result = calculate_price(
        context(start, end, "America/Chicago"), [sheet], DefaultRates(sub_location=50.0)
    )

    assert [(i.start_date_time, i.end_date_time, i.source, i.price_per_hour) for i in result.breakdown] == [
        (utc(2026, 1, 13, 14), utc(2026, 1, 13, 15), "DEFAULT_RATE", 50.0),
        (utc(2026, 1, 13, 15), utc(2026, 1, 13, 19), "RATESHEET", 20.0),
    ]
    assert result.breakdown[1].subtotal == 80.0
    assert result.total_price == 130.0
    assert_partitions(result, start, end)


def test_window_fully_covering_in_new_york():
    start, end = utc(2026, 1, 13, 14), utc(2026, 1, 13, 19)
    sheet = timing(1, [window(20.0, "09:00", "14:00")])

    result = calculate_price(
        context(start, end, "America/New_York"), [sheet], DefaultRates(sub_location=50.0)
    )

    assert len(result.breakdown) == 1
    assert result.total_price == 100.0


def test_midnight_crossing_window():
    start, end = utc(2026, 3, 10, 21), utc(2026, 3, 11, 3)
    sheet = timing(1, [window(40.0, "22:00", "02:00")])

    result = calculate_price(context(start, end), [sheet], DefaultRates(location=10.0))

    assert [(i.start_date_time.hour, i.end_date_time.hour, i.price_per_hour) for i in result.breakdown] == [
        (21, 22, 10.0),
        (22, 0, 40.0),
        (0, 2, 40.0),
        (2, 3, 10.0),
    ]
    assert result.total_price == 180.0
    assert_partitions(result, start, end)


@pytest.mark.parametrize("length, total, source", [
    (timedelta(hours=6), 300.0, "RATESHEET"),
    (timedelta(hours=5, minutes=59), 59.83, "DEFAULT_RATE"),
    (timedelta(hours=6, minutes=1), 60.17, "DEFAULT_RATE"),
])
def test_duration_rule_exact_match(length, total, source):
    start = utc(2026, 1, 13, 10)
    package = RatesheetRule(
        id=5,
        name="Six hour package",
        type=RatesheetType.DURATION_BASED,
        applies_to=SUB,
        effective_from=utc(2026, 1, 1),
        duration_rules=(DurationRule(duration_hours=6, total_price=300.0),),
        approval_status=ApprovalStatus.APPROVED,
    )

    result = calculate_price(context(start, start + length), [package], DefaultRates(sub_location=10.0))

    assert result.total_price == total
    assert {item.source for item in result.breakdown} == {source}


def test_duration_block_price_is_shared_across_segments():
    start, end = utc(2026, 1, 13, 10), utc(2026, 1, 13, 16)
    package = RatesheetRule(
        id=5,
        name="Six hour package",
        type=RatesheetType.DURATION_BASED,
        applies_to=SUB,
        effective_from=utc(2026, 1, 1),
        priority=3500,
        duration_rules=(DurationRule(duration_hours=6, total_price=300.0),),
        approval_status=ApprovalStatus.APPROVED,
    )
    peak = timing(6, [window(90.0, "12:00", "14:00")], priority=3000)

    result = calculate_price(context(start, end), [peak, package], DefaultRates(sub_location=10.0))

    assert [item.subtotal for item in result.breakdown] == [100.0, 100.0, 100.0]
    assert all(item.total_price == 300.0 for item in result.breakdown)
    assert result.total_price == 300.0


def test_highest_price_tie():
    start, end = utc(2026, 1, 13, 14), utc(2026, 1, 13, 16)
    standard = timing(1, [window(15.0)], priority=3000, conflict_resolution=ConflictResolution.HIGHEST_PRICE)
    premium = timing(2, [window(22.0)], priority=3000)

    result = calculate_price(context(start, end), [standard, premium], DefaultRates())

    assert result.breakdown[0].price_per_hour == 22.0
    assert result.breakdown[0].ratesheet_id == 2
    assert result.total_price == 44.0


def test_specificity_precedence():
    start, end = utc(2026, 1, 13, 14), utc(2026, 1, 13, 16)
    location = timing(1, [window(90.0)], applies_to=LOC, priority=999)
    sub_location = timing(2, [window(30.0)], priority=1)

    result = calculate_price(context(start, end), [location, sub_location], DefaultRates())

    assert result.total_price == 60.0
    assert result.breakdown[0].ratesheet_id == 2
    assert result.decision_log[0].rejected


def test_ineligible_sheets_are_ignored():
    start, end = utc(2026, 1, 13, 14), utc(2026, 1, 13, 16)
    draft = timing(1, [window(90.0)], approval_status=ApprovalStatus.DRAFT)
    other_room = timing(2, [window(90.0)], applies_to=AppliesTo(EntityLevel.SUBLOCATION, 101))

    result = calculate_price(context(start, end), [draft, other_room], DefaultRates(customer=25.0))

    assert result.total_price == 50.0
    assert result.breakdown[0].ratesheet_name == "Customer default rate"


def test_effective_range_clips_coverage():
    start, end = utc(2026, 1, 13, 10), utc(2026, 1, 13, 14)
    expiring = timing(1, [window(20.0)], effective_to=utc(2026, 1, 13, 12))

    result = calculate_price(context(start, end), [expiring], DefaultRates(sub_location=10.0))

    assert [item.subtotal for item in result.breakdown] == [40.0, 20.0]
    assert result.total_price == 60.0


def test_event_sheet_needs_event_id():
    start, end = utc(2026, 1, 13, 14), utc(2026, 1, 13, 16)
    event_sheet = timing(9, [window(99.0)], applies_to=AppliesTo(EntityLevel.EVENT, 7))
    sub_sheet = timing(2, [window(30.0)], priority=3999)

    without_event = calculate_price(context(start, end), [event_sheet, sub_sheet], DefaultRates())
    with_event = calculate_price(context(start, end, event_id=7), [event_sheet, sub_sheet], DefaultRates())

    assert without_event.total_price == 60.0
    assert with_event.total_price == 198.0


def test_unresolvable_segment_is_fatal():
    start, end = utc(2026, 1, 13, 10), utc(2026, 1, 13, 14)
    partial = timing(1, [window(20.0, "10:00", "12:00")])

    with pytest.raises(UnresolvableRateError):
        calculate_price(context(start, end), [partial], DefaultRates())


@pytest.mark.parametrize("start, end", [
    (utc(2026, 1, 13, 14), utc(2026, 1, 13, 14)),
    (utc(2026, 1, 13, 14), utc(2026, 1, 13, 12)),
])
def test_empty_or_inverted_interval(start, end):
    with pytest.raises(ValidationError):
        calculate_price(context(start, end), [], DefaultRates(system=10.0))


def test_materialized_surge_multiplies_base_price():
    start, end = utc(2026, 1, 13, 17), utc(2026, 1, 13, 21)
    surge = RatesheetRule(
        id=50,
        name="SURGE: Evening",
        type=RatesheetType.SURGE_MULTIPLIER,
        applies_to=LOC,
        effective_from=utc(2026, 1, 1),
        priority=10000,
        time_windows=(window(1.5, "18:00", "20:00"),),
        approval_status=ApprovalStatus.APPROVED,
    )

    result = calculate_price(context(start, end), [surge], DefaultRates(sub_location=100.0))

    assert [(i.subtotal, i.surge_multiplier) for i in result.breakdown] == [
        (100.0, None),
        (300.0, 1.5),
        (100.0, None),
    ]
    assert result.breakdown[1].price_per_hour == 150.0
    assert result.breakdown[1].surge_ratesheet_id == 50
    assert result.total_price == 500.0


def live_config(supply):
    return SurgeConfigSpec(
        id=8,
        name="Live",
        applies_to=SUB,
        current_demand=20,
        current_supply=supply,
        historical_avg_pressure=1.0,
        effective_from=utc(2026, 1, 1),
    )


def test_live_surge_config_applies():
    start, end = utc(2026, 1, 13, 10), utc(2026, 1, 13, 12)

    result = calculate_price(
        context(start, end), [], DefaultRates(sub_location=100.0), surge_configs=[live_config(10)]
    )

    assert result.breakdown[0].surge_multiplier == pytest.approx(1.2079, abs=1e-4)
    assert result.total_price == 241.59


def test_bad_surge_inputs_only_disable_the_layer():
    start, end = utc(2026, 1, 13, 10), utc(2026, 1, 13, 12)

    result = calculate_price(
        context(start, end), [], DefaultRates(sub_location=100.0), surge_configs=[live_config(0)]
    )
    assert result.total_price == 200.0

    with pytest.raises(SurgeInputError):
        calculate_price(
            context(start, end), [], DefaultRates(sub_location=100.0),
            surge_configs=[live_config(0)], require_surge=True,
        )


def test_identical_inputs_give_identical_results():
    start, end = utc(2026, 3, 10, 21), utc(2026, 3, 11, 3)
    sheets = [
        timing(1, [window(40.0, "22:00", "02:00")], priority=3000),
        timing(2, [window(25.0, "20:00", "23:30")], applies_to=LOC, priority=2000),
    ]

    first = calculate_price(context(start, end, "Europe/Berlin"), sheets, DefaultRates(location=10.0))
    second = calculate_price(context(start, end, "Europe/Berlin"), sheets, DefaultRates(location=10.0))

    assert first == second
    assert_partitions(first, start, end)
    assert len(first.decision_log) == len(first.breakdown)
    assert first.total_price == round(sum(item.subtotal for item in first.breakdown), 2)


def test_surge_scales_package_figures_consistently():
    start, end = utc(2026, 1, 13, 10), utc(2026, 1, 13, 16)
    package = RatesheetRule(
        id=5,
        name="Six hour package",
        type=RatesheetType.DURATION_BASED,
        applies_to=SUB,
        effective_from=utc(2026, 1, 1),
        duration_rules=(DurationRule(duration_hours=6, total_price=300.0),),
        approval_status=ApprovalStatus.APPROVED,
    )
    surge = RatesheetRule(
        id=50,
        name="SURGE: Lunch",
        type=RatesheetType.SURGE_MULTIPLIER,
        applies_to=LOC,
        effective_from=utc(2026, 1, 1),
        priority=10000,
        time_windows=(window(1.5, "12:00", "14:00"),),
        approval_status=ApprovalStatus.APPROVED,
    )

    result = calculate_price(context(start, end), [package, surge], DefaultRates())

    assert [(i.price_per_hour, i.subtotal, i.total_price) for i in result.breakdown] == [
        (50.0, 100.0, 300.0),
        (75.0, 150.0, 450.0),
        (50.0, 100.0, 300.0),
    ]
    assert result.total_price == 350.0
