"""
Surge materialization service.

Freezes a surge config's current multiplier into a DRAFT SURGE_MULTIPLIER
ratesheet. The ratesheet only goes live once approved (see
ratesheet_workflow.approve). Concurrent materializations of the same config
are last write wins on materialized_ratesheet_id.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_pricing.app.core.config import settings
from venue_pricing.app.core.exceptions import NotFoundError
from venue_pricing.app.domain.pricing.surge import (
    SurgeCalculation,
    SurgeParams,
    build_demand_supply_snapshot,
    build_surge_windows,
    calculate_surge,
)
from venue_pricing.app.domain.pricing.types import ensure_utc
from venue_pricing.app.models.enums import ApprovalStatus, ConflictResolution, RatesheetType
from venue_pricing.app.models.ratesheet import Ratesheet
from venue_pricing.app.models.surge_config import SurgeConfig
from venue_pricing.app.schemas.surge import SurgeConfigCreate
from venue_pricing.app.services.audit import AuditAction, log_event
from venue_pricing.app.services.ratesheet_workflow import active_surge_ratesheets, ratesheet_snapshot

logger = logging.getLogger(__name__)


async def create_surge_config(db: AsyncSession, data: SurgeConfigCreate) -> SurgeConfig:
    config = SurgeConfig(
        name=data.name,
        description=data.description,
        applies_to_level=data.applies_to.level,
        applies_to_entity_id=data.applies_to.entity_id,
        priority=data.priority,
        demand_supply_params=data.demand_supply_params.model_dump(by_alias=True),
        surge_params=data.surge_params.model_dump(by_alias=True, exclude_none=True),
        time_windows=[window.to_document() for window in data.time_windows],
        effective_from=ensure_utc(data.effective_from),
        effective_to=ensure_utc(data.effective_to) if data.effective_to else None,
        surge_duration_hours=data.surge_duration_hours,
        is_active=True,
    )
    db.add(config)
    await db.flush()

    await log_event(
        db,
        action=AuditAction.SURGE_CONFIG_CREATED,
        entity_type="SurgeConfig",
        entity_id=config.id,
        actor=data.created_by,
        new_value=data.model_dump(by_alias=True, mode="json", exclude={"created_by"}),
        commit=False,
    )
    await db.commit()
    await db.refresh(config)
    return config


async def get_surge_config(db: AsyncSession, config_id: int) -> SurgeConfig:
    config = await db.get(SurgeConfig, config_id)
    if not config:
        raise NotFoundError("SurgeConfig", config_id)
    return config


async def list_surge_configs(db: AsyncSession, active_only: bool = False) -> List[SurgeConfig]:
    query = select(SurgeConfig).order_by(SurgeConfig.id)
    if active_only:
        query = query.where(SurgeConfig.is_active == True)
    result = await db.execute(query)
    return result.scalars().all()


def calculate_config_multiplier(config: SurgeConfig) -> Tuple[SurgeCalculation, SurgeParams]:
    """
    Raises:
        SurgeInputError: If the config's demand/supply inputs are unusable.
    """
    params = SurgeParams.from_settings().with_overrides(config.surge_params)
    inputs = config.demand_supply_params or {}
    calculation = calculate_surge(
        inputs.get("currentDemand"),
        inputs.get("currentSupply"),
        inputs.get("historicalAvgPressure"),
        params,
    )
    return calculation, params


def _effective_period(config: SurgeConfig) -> Tuple[datetime, datetime]:
    effective_from = ensure_utc(config.effective_from)
    if config.surge_duration_hours:
        return effective_from, effective_from + timedelta(hours=config.surge_duration_hours)
    if config.effective_to:
        return effective_from, ensure_utc(config.effective_to)
    return effective_from, effective_from + timedelta(hours=settings.surge_duration_hours)


async def materialize_surge_config(db: AsyncSession, config_id: int, actor: Optional[str] = None) -> Ratesheet:
    """
    Create a DRAFT surge ratesheet carrying the current multiplier.

    Raises:
        NotFoundError: If the surge config does not exist.
        SurgeInputError: If the multiplier cannot be calculated.
    """
    config = await get_surge_config(db, config_id)
    calculation, params = calculate_config_multiplier(config)
    inputs = config.demand_supply_params
    now = datetime.now(timezone.utc)
    effective_from, effective_to = _effective_period(config)

    ratesheet = Ratesheet(
        name=f"SURGE: {config.name}",
        description=f"Materialized from surge config {config.id}",
        type=RatesheetType.SURGE_MULTIPLIER,
        applies_to_level=config.applies_to_level,
        applies_to_entity_id=config.applies_to_entity_id,
        priority=settings.surge_priority_base + (config.priority or 0),
        conflict_resolution=ConflictResolution.PRIORITY,
        effective_from=effective_from,
        effective_to=effective_to,
        time_windows=build_surge_windows(config.time_windows or [], calculation.multiplier),
        duration_rules=[],
        is_active=False,
        approval_status=ApprovalStatus.DRAFT,
        surge_config_id=config.id,
        surge_multiplier_snapshot=calculation.multiplier,
        demand_supply_snapshot=build_demand_supply_snapshot(
            inputs["currentDemand"],
            inputs["currentSupply"],
            inputs["historicalAvgPressure"],
            calculation,
            params,
            now,
        ),
        created_by=actor or "system",
    )
    db.add(ratesheet)
    await db.flush()

    config.materialized_ratesheet_id = ratesheet.id
    config.last_materialized = now

    await log_event(
        db,
        action=AuditAction.SURGE_MATERIALIZED,
        entity_type="SurgeConfig",
        entity_id=config.id,
        actor=actor,
        new_value=ratesheet_snapshot(ratesheet),
        metadata={"ratesheetId": ratesheet.id, "multiplier": calculation.multiplier},
        commit=False,
    )
    await db.commit()
    await db.refresh(ratesheet)

    logger.info(
        "Materialized surge config %s into ratesheet %s at %.3fx",
        config.id, ratesheet.id, calculation.multiplier,
    )
    return ratesheet


async def recalculate_surge_config(
    db: AsyncSession,
    config_id: int,
    actor: Optional[str] = None,
) -> Tuple[float, float, Ratesheet]:
    """Materialize again; returns (old multiplier, new multiplier, new ratesheet)."""
    config = await get_surge_config(db, config_id)

    old_multiplier = 1.0
    if config.materialized_ratesheet_id:
        previous = await db.get(Ratesheet, config.materialized_ratesheet_id)
        if previous and previous.surge_multiplier_snapshot is not None:
            old_multiplier = previous.surge_multiplier_snapshot

    ratesheet = await materialize_surge_config(db, config_id, actor)
    logger.info(
        "Recalculated surge config %s: %.3fx -> %.3fx",
        config_id, old_multiplier, ratesheet.surge_multiplier_snapshot,
    )
    return old_multiplier, ratesheet.surge_multiplier_snapshot, ratesheet


async def archive_surge_ratesheets(db: AsyncSession, config_id: int, actor: Optional[str] = None) -> List[Ratesheet]:
    """
    Deactivate every active ratesheet materialized from the config, not just
    the one materialized_ratesheet_id points at. Returns the ratesheets
    deactivated, empty when none was live.
    """
    config = await get_surge_config(db, config_id)
    archived = await active_surge_ratesheets(db, config.id)

    for ratesheet in archived:
        old_value = ratesheet_snapshot(ratesheet)
        ratesheet.is_active = False
        await log_event(
            db,
            action=AuditAction.SURGE_ARCHIVED,
            entity_type="Ratesheet",
            entity_id=ratesheet.id,
            actor=actor,
            old_value=old_value,
            new_value=ratesheet_snapshot(ratesheet),
            metadata={"surgeConfigId": config.id},
            commit=False,
        )
    await db.commit()

    if archived:
        logger.info(
            "Archived surge ratesheets %s of config %s",
            [ratesheet.id for ratesheet in archived], config.id,
        )
    return archived
