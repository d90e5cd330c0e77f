"""
Location database model.

Every Location references exactly one Customer.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from venue_pricing.app.db.session import Base


class Location(Base):
    """Location model (a physical site owned by a Customer)."""
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    address = Column(String(500), nullable=True)

    # Pricing inheritance
    default_hourly_rate = Column(Float, nullable=True)
    timezone = Column(String(64), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Location(id={self.id}, name='{self.name}', customer_id={self.customer_id})>"
