"""
Conflict Resolver / Hierarchy Ranker.

Responsible for picking the single ratesheet that prices a segment.
Ranking:
1. Specificity (EVENT > SUBLOCATION > LOCATION > CUSTOMER)
2. Priority, descending (missing priority ranks as -1)
3. Remaining ties: conflictResolution of the top-ranked tied ratesheet
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from venue_pricing.app.domain.pricing.types import Coverage
from venue_pricing.app.models.enums import ConflictResolution, EntityLevel

LEVEL_SPECIFICITY = {
    EntityLevel.EVENT: 4,
    EntityLevel.SUBLOCATION: 3,
    EntityLevel.LOCATION: 2,
    EntityLevel.CUSTOMER: 1,
}

MISSING_PRIORITY = -1


def normalize_priority(priority: Optional[int]) -> int:
    return MISSING_PRIORITY if priority is None else priority


def rank_key(coverage: Coverage) -> Tuple[int, int]:
    """Sort key; smaller sorts first, so both components are negated."""
    rule = coverage.rule
    return (
        -LEVEL_SPECIFICITY[rule.applies_to.level],
        -normalize_priority(rule.priority),
    )


def describe_candidate(coverage: Coverage) -> str:
    rule = coverage.rule
    return (
        f"{rule.name} [{rule.applies_to.level.value} p={normalize_priority(rule.priority)}] "
        f"{coverage.label}"
    )


@dataclass
class Resolution:
    winner: Optional[Coverage]
    reason: str
    ranked: List[Coverage] = field(default_factory=list)
    rejected: List[Coverage] = field(default_factory=list)


class PricingResolver:

    @staticmethod
    def rank(candidates: Sequence[Coverage]) -> List[Coverage]:
        # sorted() is stable, so insertion order survives among equal keys
        return sorted(candidates, key=rank_key)

    @staticmethod
    def resolve(candidates: Sequence[Coverage]) -> Resolution:
        """
        Select the winning coverage of a segment.

        An empty candidate list is not an error: the caller falls back to
        the default-rate chain.
        """
        if not candidates:
            return Resolution(winner=None, reason="No ratesheet covers this segment")

        ranked = PricingResolver.rank(candidates)
        top = ranked[0]
        tied = [c for c in ranked if rank_key(c) == rank_key(top)]

        policy = top.rule.conflict_resolution
        if len(tied) == 1:
            winner = top
            if len(ranked) == 1:
                reason = "Only covering ratesheet"
            else:
                reason = (
                    f"Highest ranked: {top.rule.applies_to.level.value} level, "
                    f"priority {normalize_priority(top.rule.priority)}"
                )
        elif policy == ConflictResolution.HIGHEST_PRICE:
            winner = max(tied, key=lambda c: c.price_per_hour)
            reason = f"Tie among {len(tied)} ratesheets resolved by HIGHEST_PRICE"
        elif policy == ConflictResolution.LOWEST_PRICE:
            winner = min(tied, key=lambda c: c.price_per_hour)
            reason = f"Tie among {len(tied)} ratesheets resolved by LOWEST_PRICE"
        else:
            winner = tied[0]
            reason = f"Tie among {len(tied)} ratesheets resolved by PRIORITY (first defined)"

        rejected = [c for c in ranked if c is not winner]
        return Resolution(winner=winner, reason=reason, ranked=ranked, rejected=rejected)

    @staticmethod
    def select_surge_layer(candidates: Sequence[Coverage]) -> Optional[Coverage]:
        """Highest ranked surge layer covering a segment, if any."""
        if not candidates:
            return None
        return PricingResolver.rank(candidates)[0]
