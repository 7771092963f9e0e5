"""
MetricSnapshot model — per-period channel performance for one workflow.

Natural key: (workflow_id, channel, period_type, period_start_date).
Rates are percentages (0-100).
"""
from sqlalchemy import Column, Integer, Text, Float, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from crm_atlas.database import Base


class MetricSnapshot(Base):
    __tablename__ = 'metric_snapshots'
    __table_args__ = (
        UniqueConstraint('workflow_id', 'channel', 'period_type', 'period_start_date',
                         name='uq_metric_snapshot_natural_key'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    workflow_id = Column(Text, nullable=False, index=True)
    flow_id = Column(Integer, ForeignKey('flows.id'), nullable=True)
    channel = Column(Text, nullable=False)
    period_type = Column(Text, nullable=False)       # week / month
    period_start_date = Column(Date, nullable=False)
    sends = Column(Integer, default=0)
    opens = Column(Integer, default=0)
    clicks = Column(Integer, default=0)
    unsubs = Column(Integer, nullable=True)
    bounces = Column(Integer, nullable=True)
    complaints = Column(Integer, nullable=True)
    delivered = Column(Integer, nullable=True)
    open_rate = Column(Float, nullable=True)
    click_rate = Column(Float, nullable=True)
    ctor = Column(Float, nullable=True)
    unsub_rate = Column(Float, nullable=True)
    bounce_rate = Column(Float, nullable=True)
    complaint_rate = Column(Float, nullable=True)
    import_batch_id = Column(Text, nullable=True)
    source = Column(Text, default='csv')
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'workflow_id': self.workflow_id,
            'flow_id': self.flow_id,
            'channel': self.channel,
            'period_type': self.period_type,
            'period_start_date': self.period_start_date.isoformat() if self.period_start_date else None,
            'sends': self.sends,
            'opens': self.opens,
            'clicks': self.clicks,
            'unsubs': self.unsubs,
            'bounces': self.bounces,
            'complaints': self.complaints,
            'delivered': self.delivered,
            'open_rate': self.open_rate,
            'click_rate': self.click_rate,
            'ctor': self.ctor,
            'unsub_rate': self.unsub_rate,
            'bounce_rate': self.bounce_rate,
            'complaint_rate': self.complaint_rate,
        }
