"""
Pricing configuration database model.

System-level row of the timezone and default-rate inheritance chains,
plus the priority range partition per ratesheet level.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, JSON
from sqlalchemy.sql import func
from venue_pricing.app.db.session import Base


class PricingConfig(Base):
    """
    Pricing configuration (single row, created from settings on first use).

    priority_ranges: {"CUSTOMER": [1000, 1999], "LOCATION": [2000, 2999], ...}
    """
    __tablename__ = "pricing_configs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    default_timezone = Column(String(64), nullable=False)
    default_hourly_rate = Column(Float, nullable=True)
    priority_ranges = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<PricingConfig(id={self.id}, timezone='{self.default_timezone}')>"
