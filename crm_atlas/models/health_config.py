"""
HealthConfigRow model — the single global health-evaluation settings row.

Read once per batch and turned into an engine.config.HealthConfig.
"""
from sqlalchemy import Column, Integer, Text, Float, DateTime
from sqlalchemy.sql import func

from crm_atlas.database import Base


class HealthConfigRow(Base):
    __tablename__ = 'health_config'

    id = Column(Integer, primary_key=True, autoincrement=True)
    amber_floor = Column(Float, nullable=False, default=0.7)
    wow_amber_drop = Column(Float, nullable=False, default=0.15)
    wow_red_drop = Column(Float, nullable=False, default=0.25)
    red_floor_factor = Column(Float, nullable=True)
    rollup_strategy = Column(Text, nullable=False, default='worst_of')
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
