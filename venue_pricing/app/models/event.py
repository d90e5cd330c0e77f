"""
Event database model.

Events anchor EVENT-level ratesheets. An event is attached to the most
specific hierarchy node it runs at.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from venue_pricing.app.db.session import Base


class Event(Base):
    """Event model."""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False)

    # Anchor (most specific one wins when resolving ancestors)
    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=True, index=True)
    location_id = Column(Integer, ForeignKey('locations.id'), nullable=True, index=True)
    sub_location_id = Column(Integer, ForeignKey('sublocations.id'), nullable=True, index=True)

    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Event(id={self.id}, name='{self.name}', sublocation={self.sub_location_id})>"
