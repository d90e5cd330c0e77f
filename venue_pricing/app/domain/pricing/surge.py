"""
Surge Multiplier Calculator.

Formula:
    pressure = demand / supply
    normalized = pressure / historical_avg_pressure
    smoothed = ema_alpha * normalized + (1 - ema_alpha) * previous  (optional)
    multiplier = clamp(1 + alpha * ln(smoothed), min, max)

The multiplier is monotonic non-decreasing in demand and non-increasing in
supply, and always lies in [min, max].
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from venue_pricing.app.core.config import settings
from venue_pricing.app.core.exceptions import SurgeInputError
from venue_pricing.app.domain.pricing.types import RatesheetRule, SurgeConfigSpec, TimeWindow
from venue_pricing.app.models.enums import ApprovalStatus, ConflictResolution, RatesheetType, WindowType

logger = logging.getLogger(__name__)

# Wire keys of a surge config's surgeParams document
SURGE_PARAM_KEYS = {
    "alpha": "alpha",
    "minMultiplier": "min_multiplier",
    "maxMultiplier": "max_multiplier",
    "emaAlpha": "ema_alpha",
}


@dataclass(frozen=True)
class SurgeParams:
    alpha: float = 0.3
    min_multiplier: float = 0.75
    max_multiplier: float = 1.8
    ema_alpha: float = 0.3

    @classmethod
    def from_settings(cls) -> "SurgeParams":
        return cls(
            alpha=settings.surge_alpha,
            min_multiplier=settings.surge_min_multiplier,
            max_multiplier=settings.surge_max_multiplier,
            ema_alpha=settings.surge_ema_alpha,
        )

    def with_overrides(self, doc: Optional[Mapping[str, Any]]) -> "SurgeParams":
        """Apply a surgeParams document; missing keys keep the current value."""
        if not doc:
            return self
        changes = {
            field_name: float(doc[key])
            for key, field_name in SURGE_PARAM_KEYS.items()
            if doc.get(key) is not None
        }
        return replace(self, **changes)

    def to_document(self) -> Dict[str, float]:
        return {key: getattr(self, field_name) for key, field_name in SURGE_PARAM_KEYS.items()}


@dataclass(frozen=True)
class SurgeCalculation:
    multiplier: float
    pressure: float
    normalized_pressure: float
    smoothed_pressure: float
    raw_factor: float


def _check_inputs(demand: float, supply: float, historical_avg_pressure: float, params: SurgeParams) -> None:
    values = {
        "demand": demand,
        "supply": supply,
        "historicalAvgPressure": historical_avg_pressure,
        "alpha": params.alpha,
        "minMultiplier": params.min_multiplier,
        "maxMultiplier": params.max_multiplier,
    }
    for name, value in values.items():
        if value is None or not math.isfinite(value):
            raise SurgeInputError(f"{name} must be a finite number", details={name: value})

    if supply <= 0:
        raise SurgeInputError("Supply must be positive", details={"supply": supply})
    if demand < 0:
        raise SurgeInputError("Demand cannot be negative", details={"demand": demand})
    if historical_avg_pressure <= 0:
        raise SurgeInputError(
            "Historical average pressure must be positive",
            details={"historicalAvgPressure": historical_avg_pressure},
        )
    if params.alpha < 0:
        raise SurgeInputError("Alpha cannot be negative", details={"alpha": params.alpha})
    if params.min_multiplier > params.max_multiplier:
        raise SurgeInputError(
            "minMultiplier cannot exceed maxMultiplier",
            details={"minMultiplier": params.min_multiplier, "maxMultiplier": params.max_multiplier},
        )


def calculate_surge(
    demand: float,
    supply: float,
    historical_avg_pressure: float,
    params: SurgeParams = SurgeParams(),
    previous_smoothed_pressure: Optional[float] = None,
) -> SurgeCalculation:
    """
    Calculate a surge multiplier with its intermediate values.

    Raises:
        SurgeInputError: If supply is not positive or any input is non-finite.
    """
    _check_inputs(demand, supply, historical_avg_pressure, params)

    pressure = demand / supply
    normalized = pressure / historical_avg_pressure
    smoothed = normalized
    if previous_smoothed_pressure is not None:
        smoothed = params.ema_alpha * normalized + (1 - params.ema_alpha) * previous_smoothed_pressure

    # ln(0) is -inf; it clamps to the floor
    raw = 1 + params.alpha * math.log(smoothed) if smoothed > 0 else -math.inf
    multiplier = max(params.min_multiplier, min(params.max_multiplier, raw))

    logger.debug(
        "Surge calculation: demand=%s supply=%s pressure=%.4f normalized=%.4f raw=%.4f multiplier=%.4f",
        demand, supply, pressure, normalized, raw, multiplier,
    )
    return SurgeCalculation(
        multiplier=multiplier,
        pressure=pressure,
        normalized_pressure=normalized,
        smoothed_pressure=smoothed,
        raw_factor=raw,
    )


def surge_factor(demand: float, supply: float, historical_avg_pressure: float,
                 alpha: float = 0.3, min_multiplier: float = 0.75, max_multiplier: float = 1.8) -> float:
    params = SurgeParams(alpha=alpha, min_multiplier=min_multiplier, max_multiplier=max_multiplier)
    return calculate_surge(demand, supply, historical_avg_pressure, params).multiplier


def build_surge_windows(time_windows: Sequence[Mapping[str, Any]], multiplier: float) -> List[Dict[str, Any]]:
    """
    Ratesheet window documents carrying the multiplier as their price.

    A config without windows surges around the clock.
    """
    if not time_windows:
        return [{
            "windowType": WindowType.ABSOLUTE_TIME.value,
            "startTime": "00:00",
            "endTime": "24:00",
            "pricePerHour": multiplier,
        }]

    windows = []
    for doc in time_windows:
        window = {
            "windowType": WindowType.ABSOLUTE_TIME.value,
            "startTime": doc.get("startTime") or "00:00",
            "endTime": doc.get("endTime") or "24:00",
            "pricePerHour": multiplier,
        }
        if doc.get("daysOfWeek"):
            window["daysOfWeek"] = list(doc["daysOfWeek"])
        windows.append(window)
    return windows


def build_demand_supply_snapshot(
    demand: float,
    supply: float,
    historical_avg_pressure: float,
    calculation: SurgeCalculation,
    params: SurgeParams,
    timestamp: datetime,
) -> Dict[str, Any]:
    """Frozen inputs and output of a materialized surge multiplier."""
    return {
        "demand": demand,
        "supply": supply,
        "historicalAvgPressure": historical_avg_pressure,
        "pressure": calculation.pressure,
        "normalizedPressure": calculation.normalized_pressure,
        "multiplier": calculation.multiplier,
        "surgeParams": params.to_document(),
        "timestamp": timestamp.isoformat(),
    }


def surge_layer_from_config(
    spec: SurgeConfigSpec,
    params: SurgeParams,
    priority_base: int = 10000,
) -> Tuple[RatesheetRule, SurgeCalculation]:
    """
    Live surge layer for a config that has not been materialized.

    The layer is built approved and active so that it passes the same
    applicability filter as persisted surge ratesheets.
    """
    effective_params = params.with_overrides(spec.surge_params)
    calculation = calculate_surge(
        spec.current_demand,
        spec.current_supply,
        spec.historical_avg_pressure,
        effective_params,
    )
    windows = build_surge_windows(spec.time_windows, calculation.multiplier)
    rule = RatesheetRule(
        id=None,
        name=f"SURGE: {spec.name}",
        type=RatesheetType.SURGE_MULTIPLIER,
        applies_to=spec.applies_to,
        effective_from=spec.effective_from,
        effective_to=spec.effective_to,
        priority=priority_base + spec.priority,
        conflict_resolution=ConflictResolution.PRIORITY,
        time_windows=tuple(TimeWindow.from_document(doc) for doc in windows),
        is_active=spec.is_active,
        approval_status=ApprovalStatus.APPROVED,
    )
    return rule, calculation
