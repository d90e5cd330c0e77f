"""
Audit Log Database Model.

Records pricing configuration changes with their old and new values.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from venue_pricing.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for ratesheet and surge changes.

    Events logged:
    - RATESHEET_CREATED / RATESHEET_UPDATED
    - RATESHEET_SUBMITTED / RATESHEET_APPROVED / RATESHEET_REJECTED
    - SURGE_MATERIALIZED / SURGE_SUPERSEDED / SURGE_ARCHIVED
    - PRICING_CONFIG_UPDATED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # What was changed
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Integer, index=True, nullable=True)

    # Values before and after the change
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity={self.entity_type}:{self.entity_id})>"
