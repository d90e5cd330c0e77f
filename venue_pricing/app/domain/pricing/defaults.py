"""
Default-rate and timezone inheritance chains.

Both walk SubLocation -> Location -> Customer -> System and take the first
value that is set.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from venue_pricing.app.core.exceptions import UnresolvableRateError
from venue_pricing.app.domain.pricing.types import DefaultRates


@dataclass(frozen=True)
class ResolvedDefault:
    rate: float
    source: str  # SUBLOCATION, LOCATION, CUSTOMER or SYSTEM


def resolve_default(defaults: DefaultRates) -> ResolvedDefault:
    chain = (
        ("SUBLOCATION", defaults.sub_location),
        ("LOCATION", defaults.location),
        ("CUSTOMER", defaults.customer),
        ("SYSTEM", defaults.system),
    )
    for source, rate in chain:
        # 0.0 is a valid rate
        if rate is not None:
            return ResolvedDefault(rate=float(rate), source=source)

    raise UnresolvableRateError(details={"checked": [source for source, _ in chain]})


def resolve_timezone(chain: Sequence[Tuple[str, Optional[str]]], fallback: str) -> Tuple[str, str]:
    """
    First timezone set along (source, value) pairs.

    Returns (timezone, source); the fallback is reported as SYSTEM.
    """
    for source, value in chain:
        if value:
            return value, source
    return fallback, "SYSTEM"
