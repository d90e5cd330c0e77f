"""
Ratesheet approval workflow.

DRAFT -> PENDING_APPROVAL -> APPROVED | REJECTED. Only forward moves are
allowed; changing a reviewed ratesheet means creating a new one. Every step
writes an audit record with old and new values.
Approving a surge ratesheet activates it and supersedes the config's other
active surge ratesheets.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_pricing.app.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from venue_pricing.app.domain.pricing.pricing_service import get_or_create_pricing_config
from venue_pricing.app.domain.pricing.types import ensure_utc
from venue_pricing.app.models.enums import ApprovalStatus, EntityLevel, RatesheetType
from venue_pricing.app.models.ratesheet import Ratesheet
from venue_pricing.app.schemas.ratesheet import RatesheetCreate, RatesheetUpdate
from venue_pricing.app.services.audit import AuditAction, log_event

logger = logging.getLogger(__name__)

ENTITY_TYPE = "Ratesheet"

ALLOWED_TRANSITIONS = {
    ApprovalStatus.DRAFT: {ApprovalStatus.PENDING_APPROVAL},
    ApprovalStatus.PENDING_APPROVAL: {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED},
    ApprovalStatus.REJECTED: set(),
    ApprovalStatus.APPROVED: set(),
}

# Fields frozen once a ratesheet has been reviewed
RULE_FIELDS = {
    "name", "description", "priority", "conflict_resolution",
    "effective_from", "effective_to", "time_windows", "duration_rules", "recurrence",
}


def ensure_transition(ratesheet: Ratesheet, target: ApprovalStatus) -> None:
    current = ratesheet.approval_status
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot move ratesheet from {current.value} to {target.value}",
            details={"ratesheetId": ratesheet.id, "from": current.value, "to": target.value},
        )


def validate_priority(level: EntityLevel, priority: Optional[int], priority_ranges: Mapping[str, List[int]]) -> None:
    """
    Check a priority against the range reserved for its level.

    Missing priorities are allowed and rank lowest.
    """
    if priority is None:
        return
    bounds = priority_ranges.get(level.value)
    if not bounds:
        return
    low, high = bounds
    if not low <= priority <= high:
        raise ValidationError(
            f"Priority {priority} is outside the {level.value} range [{low}, {high}]",
            details={"priority": priority, "level": level.value, "range": [low, high]},
        )


def ratesheet_snapshot(ratesheet: Ratesheet) -> Dict[str, Any]:
    """JSON-safe view of a ratesheet for audit records."""
    def iso(value):
        return ensure_utc(value).isoformat() if value else None

    return {
        "name": ratesheet.name,
        "description": ratesheet.description,
        "type": ratesheet.type.value,
        "appliesTo": {"level": ratesheet.applies_to_level.value, "entityId": ratesheet.applies_to_entity_id},
        "priority": ratesheet.priority,
        "conflictResolution": ratesheet.conflict_resolution.value,
        "effectiveFrom": iso(ratesheet.effective_from),
        "effectiveTo": iso(ratesheet.effective_to),
        "timeWindows": ratesheet.time_windows,
        "durationRules": ratesheet.duration_rules,
        "recurrence": ratesheet.recurrence,
        "isActive": ratesheet.is_active,
        "approvalStatus": ratesheet.approval_status.value,
        "approvedBy": ratesheet.approved_by,
        "rejectionReason": ratesheet.rejection_reason,
        "surgeMultiplierSnapshot": ratesheet.surge_multiplier_snapshot,
    }


async def get_ratesheet(db: AsyncSession, ratesheet_id: int) -> Ratesheet:
    ratesheet = await db.get(Ratesheet, ratesheet_id)
    if not ratesheet:
        raise NotFoundError("Ratesheet", ratesheet_id)
    return ratesheet


async def list_ratesheets(
    db: AsyncSession,
    level: Optional[EntityLevel] = None,
    entity_id: Optional[int] = None,
    status: Optional[ApprovalStatus] = None,
    ratesheet_type: Optional[RatesheetType] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[Ratesheet], int]:
    conditions = []
    if level is not None:
        conditions.append(Ratesheet.applies_to_level == level)
    if entity_id is not None:
        conditions.append(Ratesheet.applies_to_entity_id == entity_id)
    if status is not None:
        conditions.append(Ratesheet.approval_status == status)
    if ratesheet_type is not None:
        conditions.append(Ratesheet.type == ratesheet_type)

    total_result = await db.execute(select(func.count(Ratesheet.id)).where(*conditions))
    total = total_result.scalar()

    offset = (page - 1) * page_size
    query = select(Ratesheet).where(*conditions).order_by(Ratesheet.id).offset(offset).limit(page_size)
    result = await db.execute(query)
    return result.scalars().all(), total


async def create_ratesheet(db: AsyncSession, data: RatesheetCreate) -> Ratesheet:
    """Create a DRAFT ratesheet after checking its priority range."""
    config = await get_or_create_pricing_config(db)
    validate_priority(data.applies_to.level, data.priority, config.priority_ranges)

    ratesheet = Ratesheet(
        name=data.name,
        description=data.description,
        type=data.type,
        applies_to_level=data.applies_to.level,
        applies_to_entity_id=data.applies_to.entity_id,
        priority=data.priority,
        conflict_resolution=data.conflict_resolution,
        effective_from=ensure_utc(data.effective_from),
        effective_to=ensure_utc(data.effective_to) if data.effective_to else None,
        time_windows=[window.to_document() for window in data.time_windows],
        duration_rules=[rule.to_document() for rule in data.duration_rules],
        recurrence=data.recurrence.to_document() if data.recurrence else None,
        is_active=True,
        approval_status=ApprovalStatus.DRAFT,
        created_by=data.created_by,
    )
    db.add(ratesheet)
    await db.flush()

    await log_event(
        db,
        action=AuditAction.RATESHEET_CREATED,
        entity_type=ENTITY_TYPE,
        entity_id=ratesheet.id,
        actor=data.created_by,
        new_value=ratesheet_snapshot(ratesheet),
        commit=False,
    )
    await db.commit()
    await db.refresh(ratesheet)

    logger.info("Created ratesheet %s '%s' (%s)", ratesheet.id, ratesheet.name, ratesheet.applies_to_level.value)
    return ratesheet


async def update_ratesheet(db: AsyncSession, ratesheet_id: int, data: RatesheetUpdate) -> Ratesheet:
    """
    Apply a partial update.

    Reviewed (approved or rejected) ratesheets only accept isActive changes.

    Raises:
        InvalidTransitionError: For approved surge ratesheets, ratesheets
            awaiting approval and rule changes to reviewed ratesheets.
    """
    ratesheet = await get_ratesheet(db, ratesheet_id)
    changes = data.model_dump(exclude_unset=True, exclude={"updated_by"})

    if ratesheet.type == RatesheetType.SURGE_MULTIPLIER and ratesheet.approval_status == ApprovalStatus.APPROVED:
        raise InvalidTransitionError(
            "Approved surge ratesheets are immutable; materialize the surge config again instead",
            details={"ratesheetId": ratesheet.id},
        )
    if ratesheet.approval_status == ApprovalStatus.PENDING_APPROVAL:
        raise InvalidTransitionError(
            "Ratesheets awaiting approval cannot be edited",
            details={"ratesheetId": ratesheet.id},
        )
    frozen = sorted(RULE_FIELDS & changes.keys())
    if frozen and ratesheet.approval_status in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
        raise InvalidTransitionError(
            f"{ratesheet.approval_status.value} ratesheets cannot change their rules; create a new ratesheet",
            details={"ratesheetId": ratesheet.id, "fields": frozen},
        )

    if "priority" in changes and ratesheet.type != RatesheetType.SURGE_MULTIPLIER:
        config = await get_or_create_pricing_config(db)
        validate_priority(ratesheet.applies_to_level, changes["priority"], config.priority_ranges)

    if "effective_from" in changes and changes["effective_from"] is None:
        raise ValidationError("effectiveFrom cannot be cleared")
    if ratesheet.type == RatesheetType.TIMING_BASED and "time_windows" in changes and not changes["time_windows"]:
        raise ValidationError("Timing-based ratesheets need at least one time window")
    if ratesheet.type == RatesheetType.DURATION_BASED and "duration_rules" in changes and not changes["duration_rules"]:
        raise ValidationError("Duration-based ratesheets need at least one duration rule")
    effective_from = changes.get("effective_from", ratesheet.effective_from)
    effective_to = changes.get("effective_to", ratesheet.effective_to)
    if effective_to is not None and ensure_utc(effective_to) < ensure_utc(effective_from):
        raise ValidationError("effectiveTo must not be before effectiveFrom")

    old_value = ratesheet_snapshot(ratesheet)

    for field, value in changes.items():
        if field in ("effective_from", "effective_to") and value is not None:
            value = ensure_utc(value)
        elif field == "time_windows":
            value = [window.to_document() for window in data.time_windows or []]
        elif field == "duration_rules":
            value = [rule.to_document() for rule in data.duration_rules or []]
        elif field == "recurrence":
            value = data.recurrence.to_document() if data.recurrence else None
        setattr(ratesheet, field, value)

    await log_event(
        db,
        action=AuditAction.RATESHEET_UPDATED,
        entity_type=ENTITY_TYPE,
        entity_id=ratesheet.id,
        actor=data.updated_by,
        old_value=old_value,
        new_value=ratesheet_snapshot(ratesheet),
        metadata={"fields": sorted(changes.keys())},
        commit=False,
    )
    await db.commit()
    await db.refresh(ratesheet)
    return ratesheet


async def _transition(
    db: AsyncSession,
    ratesheet: Ratesheet,
    target: ApprovalStatus,
    action: str,
    actor: Optional[str],
    old_value: Optional[Dict[str, Any]] = None,
) -> Ratesheet:
    if old_value is None:
        old_value = ratesheet_snapshot(ratesheet)
    ratesheet.approval_status = target
    await log_event(
        db,
        action=action,
        entity_type=ENTITY_TYPE,
        entity_id=ratesheet.id,
        actor=actor,
        old_value=old_value,
        new_value=ratesheet_snapshot(ratesheet),
        commit=False,
    )
    await db.commit()
    await db.refresh(ratesheet)
    logger.info("Ratesheet %s moved to %s by %s", ratesheet.id, target.value, actor or "system")
    return ratesheet


async def submit(db: AsyncSession, ratesheet_id: int, submitted_by: Optional[str] = None) -> Ratesheet:
    ratesheet = await get_ratesheet(db, ratesheet_id)
    ensure_transition(ratesheet, ApprovalStatus.PENDING_APPROVAL)
    return await _transition(db, ratesheet, ApprovalStatus.PENDING_APPROVAL, AuditAction.RATESHEET_SUBMITTED, submitted_by)


async def reject(db: AsyncSession, ratesheet_id: int, reason: str, rejected_by: Optional[str] = None) -> Ratesheet:
    ratesheet = await get_ratesheet(db, ratesheet_id)
    ensure_transition(ratesheet, ApprovalStatus.REJECTED)
    old_value = ratesheet_snapshot(ratesheet)
    ratesheet.rejection_reason = reason
    return await _transition(
        db, ratesheet, ApprovalStatus.REJECTED, AuditAction.RATESHEET_REJECTED, rejected_by, old_value
    )


async def approve(db: AsyncSession, ratesheet_id: int, approved_by: str) -> Ratesheet:
    """
    Approve a pending ratesheet.

    A surge ratesheet goes live on approval and deactivates every other
    active ratesheet materialized from the same surge config.
    """
    ratesheet = await get_ratesheet(db, ratesheet_id)
    ensure_transition(ratesheet, ApprovalStatus.APPROVED)

    old_value = ratesheet_snapshot(ratesheet)
    ratesheet.approved_by = approved_by
    ratesheet.approved_at = datetime.now(timezone.utc)

    if ratesheet.type == RatesheetType.SURGE_MULTIPLIER:
        ratesheet.is_active = True
        if ratesheet.surge_config_id is not None:
            await _supersede_surge_ratesheets(db, ratesheet, approved_by)

    return await _transition(
        db, ratesheet, ApprovalStatus.APPROVED, AuditAction.RATESHEET_APPROVED, approved_by, old_value
    )


async def active_surge_ratesheets(
    db: AsyncSession,
    surge_config_id: int,
    exclude_id: Optional[int] = None,
) -> List[Ratesheet]:
    """Active ratesheets materialized from a surge config, oldest first."""
    query = select(Ratesheet).where(
        Ratesheet.surge_config_id == surge_config_id,
        Ratesheet.is_active == True,
    )
    if exclude_id is not None:
        query = query.where(Ratesheet.id != exclude_id)
    result = await db.execute(query.order_by(Ratesheet.id))
    return result.scalars().all()


async def _supersede_surge_ratesheets(db: AsyncSession, ratesheet: Ratesheet, actor: Optional[str]) -> None:
    for previous in await active_surge_ratesheets(db, ratesheet.surge_config_id, exclude_id=ratesheet.id):
        old_value = ratesheet_snapshot(previous)
        previous.is_active = False
        await log_event(
            db,
            action=AuditAction.SURGE_SUPERSEDED,
            entity_type=ENTITY_TYPE,
            entity_id=previous.id,
            actor=actor,
            old_value=old_value,
            new_value=ratesheet_snapshot(previous),
            metadata={"supersededBy": ratesheet.id},
            commit=False,
        )
        logger.info("Surge ratesheet %s superseded by %s", previous.id, ratesheet.id)
