"""
Audit logging service for tracking pricing configuration changes.

Every ratesheet workflow step and surge materialization records the values
before and after the change.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from venue_pricing.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    RATESHEET_CREATED = "RATESHEET_CREATED"
    RATESHEET_UPDATED = "RATESHEET_UPDATED"
    RATESHEET_SUBMITTED = "RATESHEET_SUBMITTED"
    RATESHEET_APPROVED = "RATESHEET_APPROVED"
    RATESHEET_REJECTED = "RATESHEET_REJECTED"

    SURGE_CONFIG_CREATED = "SURGE_CONFIG_CREATED"
    SURGE_MATERIALIZED = "SURGE_MATERIALIZED"
    SURGE_SUPERSEDED = "SURGE_SUPERSEDED"
    SURGE_ARCHIVED = "SURGE_ARCHIVED"

    PRICING_CONFIG_UPDATED = "PRICING_CONFIG_UPDATED"


async def log_event(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    actor: Optional[str] = None,
    old_value: Optional[Dict[str, Any]] = None,
    new_value: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    commit: bool = True,
) -> AuditLog:
    """
    Log a change to the audit log.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        entity_type: Kind of record changed (Ratesheet, SurgeConfig, PricingConfig)
        entity_id: ID of the changed record
        actor: Who performed the change (None for system actions)
        old_value: JSON snapshot before the change
        new_value: JSON snapshot after the change
        metadata: Additional context as JSON
        commit: Commit the session; pass False to join the caller's transaction

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_value=old_value,
        new_value=new_value,
        meta_data=metadata,
    )

    db.add(audit_log)
    if commit:
        await db.commit()
        await db.refresh(audit_log)

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)

    if entity_id is not None:
        query = query.where(AuditLog.entity_id == entity_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
