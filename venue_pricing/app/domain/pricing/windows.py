"""
Interval & Window Evaluator.

Turns clock-time and duration-relative windows into absolute sub-intervals
of a booking [start, end), and partitions a booking at rule boundaries.

All datetimes returned are aware UTC. Absolute windows are localized to the
booking timezone per calendar day before being compared.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, NamedTuple, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from venue_pricing.app.core.exceptions import ValidationError
from venue_pricing.app.domain.pricing.types import (
    Coverage,
    DurationRule,
    RatesheetRule,
    TimeWindow,
    ensure_utc,
)
from venue_pricing.app.models.enums import DayOfWeek, RatesheetType

MINUTES_PER_DAY = 24 * 60

# Indexed by date.weekday()
WEEKDAYS = (
    DayOfWeek.MONDAY,
    DayOfWeek.TUESDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.FRIDAY,
    DayOfWeek.SATURDAY,
    DayOfWeek.SUNDAY,
)


class WindowPiece(NamedTuple):
    start: datetime
    end: datetime
    price_per_hour: float


def load_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown timezone '{name}'", details={"timezone": name}) from exc


def parse_clock(value: Optional[str]) -> Optional[int]:
    """
    Parse an HH:mm clock time into minutes since midnight.

    Empty values return None. "24:00" is accepted as end of day.
    """
    if not value:
        return None
    try:
        hours_text, minutes_text = value.split(":")
        hours, minutes = int(hours_text), int(minutes_text)
    except ValueError as exc:
        raise ValidationError(f"Invalid clock time '{value}', expected HH:mm") from exc

    total = hours * 60 + minutes
    if not 0 <= minutes < 60 or not 0 <= total <= MINUTES_PER_DAY:
        raise ValidationError(f"Invalid clock time '{value}', expected HH:mm")
    return total


def clip(start: datetime, end: datetime, bound_start: datetime, bound_end: datetime) -> Optional[Tuple[datetime, datetime]]:
    """Intersect [start, end) with [bound_start, bound_end). Empty results are None."""
    lo = max(start, bound_start)
    hi = min(end, bound_end)
    if lo >= hi:
        return None
    return lo, hi


def _local_instant(day: date, minutes: int, tz: ZoneInfo) -> datetime:
    midnight = datetime.combine(day, time(0), tzinfo=tz)
    return (midnight + timedelta(minutes=minutes)).astimezone(timezone.utc)


def _runs_on(window: TimeWindow, day: date) -> bool:
    return not window.days_of_week or WEEKDAYS[day.weekday()] in window.days_of_week


def split_local_days(start: datetime, end: datetime, tz: ZoneInfo) -> List[Tuple[date, datetime, datetime]]:
    """Cut [start, end) at local midnights, tagging each part with its local date."""
    parts = []
    while start < end:
        day = start.astimezone(tz).date()
        next_midnight = _local_instant(day + timedelta(days=1), 0, tz)
        part_end = min(end, next_midnight)
        parts.append((day, start, part_end))
        start = part_end
    return parts


def evaluate_window(window: TimeWindow, start: datetime, end: datetime, tz: ZoneInfo) -> List[WindowPiece]:
    """
    Sub-intervals of [start, end) during which the window is in force.

    The result is unsorted; zero-length pieces are dropped.
    """
    start, end = ensure_utc(start), ensure_utc(end)

    if window.is_duration_relative:
        if window.start_minute is None or window.end_minute is None:
            raise ValidationError("Duration-relative window requires startMinute and endMinute")
        piece = clip(
            start + timedelta(minutes=window.start_minute),
            start + timedelta(minutes=window.end_minute),
            start,
            end,
        )
        return [WindowPiece(piece[0], piece[1], window.price_per_hour)] if piece else []

    start_minute = parse_clock(window.start_time)
    end_minute = parse_clock(window.end_time)
    if start_minute is None:
        start_minute = 0
    if end_minute is None:
        end_minute = MINUTES_PER_DAY

    pieces: List[WindowPiece] = []
    # Start a day early so the tail of a window that wrapped past midnight is seen
    day = start.astimezone(tz).date() - timedelta(days=1)
    last_day = end.astimezone(tz).date()

    while day <= last_day:
        if _runs_on(window, day):
            if end_minute > start_minute:
                spans = [(_local_instant(day, start_minute, tz), _local_instant(day, end_minute, tz))]
            else:
                next_day = day + timedelta(days=1)
                midnight = _local_instant(next_day, 0, tz)
                spans = [
                    (_local_instant(day, start_minute, tz), midnight),
                    (midnight, _local_instant(next_day, end_minute, tz)),
                ]
            for span_start, span_end in spans:
                piece = clip(span_start, span_end, start, end)
                if piece:
                    pieces.append(WindowPiece(piece[0], piece[1], window.price_per_hour))
        day += timedelta(days=1)

    return pieces


def match_duration_rule(rule: RatesheetRule, start: datetime, end: datetime) -> Optional[DurationRule]:
    """First duration rule whose block length equals the booking length exactly."""
    length = ensure_utc(end) - ensure_utc(start)
    for duration_rule in rule.duration_rules:
        if timedelta(hours=duration_rule.duration_hours) == length:
            return duration_rule
    return None


def ratesheet_coverage(rule: RatesheetRule, start: datetime, end: datetime, tz: ZoneInfo) -> List[Coverage]:
    """
    Every sub-interval of [start, end) a ratesheet prices, in window order.

    Pieces are clipped to the ratesheet's effective range and to the local
    dates its recurrence allows. A duration rule only covers the whole
    booking, and only when the effective range contains it and the booking
    starts on a recurring date.
    """
    start, end = ensure_utc(start), ensure_utc(end)
    effective_from = ensure_utc(rule.effective_from)
    effective_to = ensure_utc(rule.effective_to) if rule.effective_to else None

    if rule.type == RatesheetType.DURATION_BASED:
        if effective_from > start or (effective_to is not None and effective_to < end):
            return []
        if rule.recurrence and not rule.recurrence.matches(start.astimezone(tz).date()):
            return []
        matched = match_duration_rule(rule, start, end)
        if matched is None:
            return []
        label = matched.description or f"{matched.duration_hours:g}h package @ ${matched.total_price:g}"
        return [Coverage(
            rule=rule,
            start=start,
            end=end,
            price_per_hour=matched.total_price / matched.duration_hours,
            label=label,
            block_price=matched.total_price,
        )]

    bound_start = max(start, effective_from)
    bound_end = min(end, effective_to) if effective_to is not None else end
    if bound_start >= bound_end:
        return []

    unit = "x" if rule.is_surge else "/hr"
    coverage: List[Coverage] = []
    for window in rule.time_windows:
        for piece in evaluate_window(window, start, end, tz):
            clipped = clip(piece.start, piece.end, bound_start, bound_end)
            if not clipped:
                continue
            if rule.recurrence:
                spans = [
                    (part_start, part_end)
                    for day, part_start, part_end in split_local_days(clipped[0], clipped[1], tz)
                    if rule.recurrence.matches(day)
                ]
            else:
                spans = [clipped]
            for span_start, span_end in spans:
                coverage.append(Coverage(
                    rule=rule,
                    start=span_start,
                    end=span_end,
                    price_per_hour=piece.price_per_hour,
                    label=window.describe(unit),
                ))
    return coverage


def partition(start: datetime, end: datetime, boundaries: Iterable[datetime]) -> List[Tuple[datetime, datetime]]:
    """Split [start, end) at every boundary strictly inside it."""
    start, end = ensure_utc(start), ensure_utc(end)
    cuts = sorted({ensure_utc(b) for b in boundaries if start < ensure_utc(b) < end})
    points = [start, *cuts, end]
    return list(zip(points[:-1], points[1:]))
