"""
Surge configuration database model.

Holds the live demand/supply inputs for a hierarchy node. The multiplier is
only frozen when the config is materialized into a SURGE_MULTIPLIER ratesheet.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, Enum, JSON
from sqlalchemy.sql import func
from venue_pricing.app.db.session import Base
from venue_pricing.app.models.enums import EntityLevel


class SurgeConfig(Base):
    """
    Surge configuration model.

    demand_supply_params: {currentDemand, currentSupply, historicalAvgPressure}
    surge_params: {alpha, minMultiplier, maxMultiplier, emaAlpha}
    """
    __tablename__ = "surge_configs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)

    applies_to_level = Column(Enum(EntityLevel), nullable=False, index=True)
    applies_to_entity_id = Column(Integer, nullable=False, index=True)
    priority = Column(Integer, nullable=False, default=0)

    demand_supply_params = Column(JSON, nullable=False)
    surge_params = Column(JSON, nullable=False)
    time_windows = Column(JSON, nullable=False, default=list)

    effective_from = Column(DateTime(timezone=True), nullable=False)
    effective_to = Column(DateTime(timezone=True), nullable=True)
    surge_duration_hours = Column(Float, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Materialization bookkeeping (last write wins)
    materialized_ratesheet_id = Column(Integer, nullable=True)
    last_materialized = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def applies_to(self) -> dict:
        return {"level": self.applies_to_level, "entityId": self.applies_to_entity_id}

    def __repr__(self):
        return f"<SurgeConfig(id={self.id}, name='{self.name}', level={self.applies_to_level})>"
