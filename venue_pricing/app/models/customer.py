"""
Customer database model.

Top of the venue hierarchy: Customer -> Location -> SubLocation.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean
from sqlalchemy.sql import func
from venue_pricing.app.db.session import Base


class Customer(Base):
    """
    Customer model.

    Carries the outermost default hourly rate and timezone of the
    inheritance chains.
    """
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False)

    # Pricing inheritance
    default_hourly_rate = Column(Float, nullable=True)
    timezone = Column(String(64), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}', default_rate={self.default_hourly_rate})>"
