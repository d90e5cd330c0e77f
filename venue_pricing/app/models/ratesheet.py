"""
Ratesheet database model.

A pricing rule bound to one level of the venue hierarchy. Window and
duration rules are stored as JSON in their wire (camelCase) shape.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, ForeignKey, Enum, JSON
from sqlalchemy.sql import func
from venue_pricing.app.db.session import Base
from venue_pricing.app.models.enums import (
    ApprovalStatus, ConflictResolution, EntityLevel, RatesheetType
)


class Ratesheet(Base):
    """
    Ratesheet model.

    Only ratesheets that are active AND approved take part in pricing.
    SURGE_MULTIPLIER ratesheets are materialized from a SurgeConfig and
    carry a frozen demand/supply snapshot.
    """
    __tablename__ = "ratesheets"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identity
    name = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)
    type = Column(Enum(RatesheetType), nullable=False, default=RatesheetType.TIMING_BASED)

    # Scope (appliesTo)
    applies_to_level = Column(Enum(EntityLevel), nullable=False, index=True)
    applies_to_entity_id = Column(Integer, nullable=False, index=True)

    # Priority and conflicts (legacy rows may lack a priority)
    priority = Column(Integer, nullable=True)
    conflict_resolution = Column(Enum(ConflictResolution), nullable=False, default=ConflictResolution.PRIORITY)

    # Validity (both inclusive, effective_to None = indefinite)
    effective_from = Column(DateTime(timezone=True), nullable=False)
    effective_to = Column(DateTime(timezone=True), nullable=True)

    # Rules
    time_windows = Column(JSON, nullable=False, default=list)
    duration_rules = Column(JSON, nullable=False, default=list)
    recurrence = Column(JSON, nullable=True)  # {pattern, daysOfWeek?, dayOfMonth?}

    # Approval workflow
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    approval_status = Column(Enum(ApprovalStatus), default=ApprovalStatus.DRAFT, nullable=False, index=True)
    approved_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(500), nullable=True)

    # Surge materialization (SURGE_MULTIPLIER only)
    surge_config_id = Column(Integer, ForeignKey('surge_configs.id'), nullable=True, index=True)
    surge_multiplier_snapshot = Column(Float, nullable=True)
    demand_supply_snapshot = Column(JSON, nullable=True)

    # Audit
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def applies_to(self) -> dict:
        return {"level": self.applies_to_level, "entityId": self.applies_to_entity_id}

    def __repr__(self):
        return (
            f"<Ratesheet(id={self.id}, name='{self.name}', level={self.applies_to_level}, "
            f"priority={self.priority}, status={self.approval_status})>"
        )
