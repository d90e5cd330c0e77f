"""
Ratesheet Applicability Filter.

Pure checks deciding whether a ratesheet may take part in pricing a booking.
A ratesheet that only partially overlaps the booking stays eligible; window
evaluation clips it to the overlapping portion.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from venue_pricing.app.domain.pricing.types import PricingContext, RatesheetRule, ensure_utc
from venue_pricing.app.models.enums import ApprovalStatus


def matches_entity(rule: RatesheetRule, context: PricingContext) -> bool:
    """True when the ratesheet is bound to one of the booking's hierarchy entities."""
    entity_id = context.entity_id_for(rule.applies_to.level)
    return entity_id is not None and entity_id == rule.applies_to.entity_id


def overlaps_effective_range(
    effective_from: datetime,
    effective_to: Optional[datetime],
    start: datetime,
    end: datetime,
) -> bool:
    # Both ends inclusive; a missing effective_to runs indefinitely
    if ensure_utc(effective_from) > ensure_utc(end):
        return False
    return effective_to is None or ensure_utc(effective_to) >= ensure_utc(start)


def is_eligible(rule: RatesheetRule, context: PricingContext) -> bool:
    return (
        rule.is_active
        and rule.approval_status == ApprovalStatus.APPROVED
        and matches_entity(rule, context)
        and overlaps_effective_range(
            rule.effective_from,
            rule.effective_to,
            context.start_date_time,
            context.end_date_time,
        )
    )


def filter_ratesheets(candidates: Iterable[RatesheetRule], context: PricingContext) -> List[RatesheetRule]:
    """Eligible ratesheets, in input order."""
    return [rule for rule in candidates if is_eligible(rule, context)]
