"""
HealthFlag model — evaluated RAG status for one metric of one snapshot.

Upserted on (workflow_id, channel, period_type, period_start_date, metric_name).
"""
from sqlalchemy import Column, Integer, Text, Float, Date, DateTime, Index, UniqueConstraint
from sqlalchemy.sql import func

from crm_atlas.database import Base


class HealthFlag(Base):
    __tablename__ = 'health_flags'
    __table_args__ = (
        UniqueConstraint('workflow_id', 'channel', 'period_type', 'period_start_date', 'metric_name',
                         name='uq_health_flag_natural_key'),
        Index('ix_health_flags_period', 'period_type', 'period_start_date', 'status'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    workflow_id = Column(Text, nullable=False, index=True)
    product_id = Column(Integer, nullable=True)
    channel = Column(Text, nullable=False)
    period_type = Column(Text, nullable=False)
    period_start_date = Column(Date, nullable=False)
    metric_name = Column(Text, nullable=False)
    value = Column(Float, nullable=True)
    target = Column(Float, nullable=True)
    status = Column(Text, nullable=False, default='unknown')   # green/amber/red/unknown
    reason = Column(Text, default='')
    delta_wow = Column(Float, nullable=True)
    delta_mom = Column(Float, nullable=True)
    computed_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'workflow_id': self.workflow_id,
            'product_id': self.product_id,
            'channel': self.channel,
            'period_type': self.period_type,
            'period_start_date': self.period_start_date.isoformat() if self.period_start_date else None,
            'metric_name': self.metric_name,
            'value': self.value,
            'target': self.target,
            'status': self.status,
            'reason': self.reason,
            'delta_wow': self.delta_wow,
            'delta_mom': self.delta_mom,
            'computed_at': self.computed_at.isoformat() if self.computed_at else None,
        }
