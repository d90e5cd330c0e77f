"""
Unit tests for window evaluation and interval partitioning.
"""

from datetime import datetime, timedelta, timezone

import pytest

from venue_pricing.app.core.exceptions import ValidationError
from venue_pricing.app.domain.pricing.types import (
    AppliesTo,
    DurationRule,
    RatesheetRule,
    Recurrence,
    TimeWindow,
)
from venue_pricing.app.domain.pricing.windows import (
    evaluate_window,
    load_timezone,
    match_duration_rule,
    parse_clock,
    partition,
    ratesheet_coverage,
    split_local_days,
)
from venue_pricing.app.models.enums import DayOfWeek, EntityLevel, RatesheetType, RecurrencePattern, WindowType

UTC = load_timezone("UTC")


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def spans(pieces):
    return sorted((p.start, p.end) for p in pieces)


def test_parse_clock():
    assert parse_clock("00:00") == 0
    assert parse_clock("09:30") == 570
    assert parse_clock("24:00") == 1440
    assert parse_clock("") is None
    assert parse_clock(None) is None


@pytest.mark.parametrize("value", ["25:00", "12:60", "24:01", "noon", "9"])
def test_parse_clock_rejects_malformed(value):
    with pytest.raises(ValidationError):
        parse_clock(value)


def test_unknown_timezone_is_validation_error():
    with pytest.raises(ValidationError):
        load_timezone("Mars/Olympus_Mons")


def test_midnight_crossing_window_splits_at_midnight():
    window = TimeWindow(price_per_hour=40.0, start_time="22:00", end_time="02:00")
    pieces = evaluate_window(window, utc(2026, 3, 10, 21), utc(2026, 3, 11, 3), UTC)

    assert spans(pieces) == [
        (utc(2026, 3, 10, 22), utc(2026, 3, 11, 0)),
        (utc(2026, 3, 11, 0), utc(2026, 3, 11, 2)),
    ]
    assert all(p.price_per_hour == 40.0 for p in pieces)


def test_wrap_from_previous_day_is_seen():
    window = TimeWindow(price_per_hour=40.0, start_time="22:00", end_time="02:00")
    pieces = evaluate_window(window, utc(2026, 3, 11, 1), utc(2026, 3, 11, 5), UTC)

    assert spans(pieces) == [(utc(2026, 3, 11, 1), utc(2026, 3, 11, 2))]


def test_absolute_window_is_localized():
    # 09:00-17:00 in New York is 14:00-22:00 UTC in January
    window = TimeWindow(price_per_hour=20.0, start_time="09:00", end_time="17:00")
    pieces = evaluate_window(
        window, utc(2026, 1, 13, 12), utc(2026, 1, 13, 16), load_timezone("America/New_York")
    )

    assert spans(pieces) == [(utc(2026, 1, 13, 14), utc(2026, 1, 13, 16))]


def test_absolute_window_follows_daylight_saving():
    # New York is on EDT (UTC-4) from 2026-03-08
    window = TimeWindow(price_per_hour=20.0, start_time="09:00", end_time="17:00")
    pieces = evaluate_window(
        window, utc(2026, 3, 9, 0), utc(2026, 3, 10, 0), load_timezone("America/New_York")
    )

    assert spans(pieces) == [(utc(2026, 3, 9, 13), utc(2026, 3, 9, 21))]


def test_window_without_times_covers_whole_day():
    window = TimeWindow(price_per_hour=10.0)
    pieces = evaluate_window(window, utc(2026, 1, 13, 22), utc(2026, 1, 14, 2), UTC)

    assert spans(pieces) == [
        (utc(2026, 1, 13, 22), utc(2026, 1, 14, 0)),
        (utc(2026, 1, 14, 0), utc(2026, 1, 14, 2)),
    ]


def test_end_of_day_window():
    window = TimeWindow(price_per_hour=10.0, start_time="18:00", end_time="24:00")
    pieces = evaluate_window(window, utc(2026, 1, 13, 17), utc(2026, 1, 13, 23), UTC)

    assert spans(pieces) == [(utc(2026, 1, 13, 18), utc(2026, 1, 13, 23))]


def test_duration_relative_window():
    window = TimeWindow(price_per_hour=30.0, start_minute=60, end_minute=180)
    pieces = evaluate_window(window, utc(2026, 1, 13, 10), utc(2026, 1, 13, 12), UTC)

    assert spans(pieces) == [(utc(2026, 1, 13, 11), utc(2026, 1, 13, 12))]


def test_duration_relative_window_outside_booking_is_dropped():
    window = TimeWindow(
        price_per_hour=30.0, start_minute=120, end_minute=180, window_type=WindowType.DURATION_BASED
    )
    assert evaluate_window(window, utc(2026, 1, 13, 10), utc(2026, 1, 13, 12), UTC) == []


def test_days_of_week_filter():
    # 2026-01-13 is a Tuesday
    monday = TimeWindow(price_per_hour=10.0, days_of_week=(DayOfWeek.MONDAY,))
    tuesday = TimeWindow(price_per_hour=10.0, days_of_week=(DayOfWeek.TUESDAY,))
    start, end = utc(2026, 1, 13, 10), utc(2026, 1, 13, 12)

    assert evaluate_window(monday, start, end, UTC) == []
    assert spans(evaluate_window(tuesday, start, end, UTC)) == [(start, end)]


def test_days_of_week_applies_to_the_day_a_wrap_starts():
    # Friday night window running into Saturday 2026-01-17
    window = TimeWindow(
        price_per_hour=50.0, start_time="22:00", end_time="02:00", days_of_week=(DayOfWeek.FRIDAY,)
    )
    pieces = evaluate_window(window, utc(2026, 1, 17, 0), utc(2026, 1, 17, 3), UTC)

    assert spans(pieces) == [(utc(2026, 1, 17, 0), utc(2026, 1, 17, 2))]


def duration_sheet(hours=6, price=300.0, **overrides):
    values = dict(
        id=1,
        name="Six hour package",
        type=RatesheetType.DURATION_BASED,
        applies_to=AppliesTo(EntityLevel.SUBLOCATION, 1),
        effective_from=utc(2026, 1, 1),
        duration_rules=(DurationRule(duration_hours=hours, total_price=price),),
    )
    values.update(overrides)
    return RatesheetRule(**values)


@pytest.mark.parametrize("length, matches", [
    (timedelta(hours=6), True),
    (timedelta(hours=5, minutes=59), False),
    (timedelta(hours=6, minutes=1), False),
])
def test_duration_rule_needs_exact_length(length, matches):
    start = utc(2026, 1, 13, 10)
    assert (match_duration_rule(duration_sheet(), start, start + length) is not None) is matches


def test_duration_coverage_spans_whole_booking():
    start, end = utc(2026, 1, 13, 10), utc(2026, 1, 13, 16)
    coverage = ratesheet_coverage(duration_sheet(), start, end, UTC)

    assert len(coverage) == 1
    assert (coverage[0].start, coverage[0].end) == (start, end)
    assert coverage[0].block_price == 300.0
    assert coverage[0].price_per_hour == 50.0


def test_duration_coverage_needs_effective_range_to_contain_booking():
    sheet = duration_sheet(effective_to=utc(2026, 1, 13, 12))
    assert ratesheet_coverage(sheet, utc(2026, 1, 13, 10), utc(2026, 1, 13, 16), UTC) == []


def test_timing_coverage_is_clipped_to_effective_range():
    sheet = RatesheetRule(
        id=2,
        name="All day",
        type=RatesheetType.TIMING_BASED,
        applies_to=AppliesTo(EntityLevel.SUBLOCATION, 1),
        effective_from=utc(2026, 1, 1),
        effective_to=utc(2026, 1, 13, 12),
        time_windows=(TimeWindow(price_per_hour=20.0),),
    )
    coverage = ratesheet_coverage(sheet, utc(2026, 1, 13, 10), utc(2026, 1, 13, 14), UTC)

    assert [(c.start, c.end) for c in coverage] == [(utc(2026, 1, 13, 10), utc(2026, 1, 13, 12))]



def recurring_sheet(recurrence, window=None):
    return RatesheetRule(
        id=3,
        name="Recurring",
        type=RatesheetType.TIMING_BASED,
        applies_to=AppliesTo(EntityLevel.SUBLOCATION, 1),
        effective_from=utc(2026, 1, 1),
        time_windows=(window or TimeWindow(price_per_hour=20.0),),
        recurrence=recurrence,
    )


def test_weekly_recurrence_keeps_listed_days():
    # Monday evening to early Wednesday; only Tuesday 2026-01-13 is listed
    sheet = recurring_sheet(Recurrence(RecurrencePattern.WEEKLY, days_of_week=(DayOfWeek.TUESDAY,)))
    coverage = ratesheet_coverage(sheet, utc(2026, 1, 12, 20), utc(2026, 1, 14, 2), UTC)

    assert [(c.start, c.end) for c in coverage] == [(utc(2026, 1, 13), utc(2026, 1, 14))]


def test_weekly_recurrence_uses_the_local_date():
    # 03:00-08:00 UTC is Monday 21:00 to Tuesday 02:00 in Chicago
    sheet = recurring_sheet(Recurrence(RecurrencePattern.WEEKLY, days_of_week=(DayOfWeek.TUESDAY,)))
    chicago = load_timezone("America/Chicago")
    coverage = ratesheet_coverage(sheet, utc(2026, 1, 13, 3), utc(2026, 1, 13, 8), chicago)

    assert [(c.start, c.end) for c in coverage] == [(utc(2026, 1, 13, 6), utc(2026, 1, 13, 8))]


def test_monthly_recurrence_keeps_day_of_month():
    sheet = recurring_sheet(Recurrence(RecurrencePattern.MONTHLY, day_of_month=15))
    coverage = ratesheet_coverage(sheet, utc(2026, 1, 14, 22), utc(2026, 1, 16, 2), UTC)

    assert [(c.start, c.end) for c in coverage] == [(utc(2026, 1, 15), utc(2026, 1, 16))]


def test_recurrence_splits_windows_running_past_midnight():
    window = TimeWindow(price_per_hour=20.0, start_minute=0, end_minute=600)
    sheet = recurring_sheet(Recurrence(RecurrencePattern.WEEKLY, days_of_week=(DayOfWeek.TUESDAY,)), window)
    coverage = ratesheet_coverage(sheet, utc(2026, 1, 12, 20), utc(2026, 1, 13, 6), UTC)

    assert [(c.start, c.end) for c in coverage] == [(utc(2026, 1, 13), utc(2026, 1, 13, 6))]


@pytest.mark.parametrize("day, covered", [(13, True), (14, False)])
def test_duration_coverage_needs_recurring_start_date(day, covered):
    sheet = duration_sheet(recurrence=Recurrence(RecurrencePattern.MONTHLY, day_of_month=13))
    start = utc(2026, 1, day, 10)

    assert bool(ratesheet_coverage(sheet, start, start + timedelta(hours=6), UTC)) is covered


@pytest.mark.parametrize("pattern", [RecurrencePattern.NONE, RecurrencePattern.DAILY, RecurrencePattern.YEARLY])
def test_unrestricted_recurrences_match_every_day(pattern):
    recurrence = Recurrence(pattern)
    assert all(recurrence.matches(utc(2026, 1, day).date()) for day in range(1, 32))


def test_split_local_days():
    parts = split_local_days(utc(2026, 1, 12, 20), utc(2026, 1, 14, 2), UTC)

    assert [day.day for day, _, _ in parts] == [12, 13, 14]
    assert parts[1][1:] == (utc(2026, 1, 13), utc(2026, 1, 14))

def test_partition_cuts_at_inner_boundaries_only():
    start, end = utc(2026, 1, 13, 10), utc(2026, 1, 13, 14)
    boundaries = [
        utc(2026, 1, 13, 9),
        utc(2026, 1, 13, 10),
        utc(2026, 1, 13, 12),
        utc(2026, 1, 13, 12),
        utc(2026, 1, 13, 11),
        utc(2026, 1, 13, 14),
    ]

    assert partition(start, end, boundaries) == [
        (utc(2026, 1, 13, 10), utc(2026, 1, 13, 11)),
        (utc(2026, 1, 13, 11), utc(2026, 1, 13, 12)),
        (utc(2026, 1, 13, 12), utc(2026, 1, 13, 14)),
    ]


def test_partition_without_boundaries_is_whole_interval():
    start, end = utc(2026, 1, 13, 10), utc(2026, 1, 13, 14)
    assert partition(start, end, []) == [(start, end)]
