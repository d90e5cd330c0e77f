"""
SubLocation database model.

The bookable unit of the hierarchy. Every SubLocation references exactly
one Location.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from venue_pricing.app.db.session import Base


class SubLocation(Base):
    """
    SubLocation model.

    Pricing is only calculated when both is_active and pricing_enabled are set.
    """
    __tablename__ = "sublocations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    location_id = Column(Integer, ForeignKey('locations.id'), nullable=False, index=True)
    label = Column(String(200), nullable=False)

    # Pricing inheritance
    default_hourly_rate = Column(Float, nullable=True)
    timezone = Column(String(64), nullable=True)
    pricing_enabled = Column(Boolean, default=True, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<SubLocation(id={self.id}, label='{self.label}', location_id={self.location_id})>"
