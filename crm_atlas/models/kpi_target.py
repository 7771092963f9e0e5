"""
KpiTarget model — scoped numeric target for one health metric.

Scope fields (workflow_id, product_id, channel, period_type) are all
optional; all-null is the global target. effective_to NULL means open ended.
"""
from sqlalchemy import Column, Integer, Text, Float, Date, DateTime, ForeignKey
from sqlalchemy.sql import func

from crm_atlas.database import Base


class KpiTarget(Base):
    __tablename__ = 'kpi_targets'

    id = Column(Integer, primary_key=True, autoincrement=True)
    metric_name = Column(Text, nullable=False, index=True)
    workflow_id = Column(Text, nullable=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=True)
    channel = Column(Text, nullable=True)
    period_type = Column(Text, nullable=True)
    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
    target_value = Column(Float, nullable=False)
    amber_floor = Column(Float, nullable=True)     # fraction, e.g. 0.7
    red_floor = Column(Float, nullable=True)       # fraction; defaults from amber_floor
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def scope_type(self):
        if self.workflow_id:
            return 'workflow'
        if self.product_id:
            return 'product'
        if self.channel:
            return 'channel'
        return 'global'

    def to_dict(self):
        return {
            'id': self.id,
            'metric_name': self.metric_name,
            'workflow_id': self.workflow_id,
            'product_id': self.product_id,
            'channel': self.channel,
            'period_type': self.period_type,
            'scope_type': self.scope_type,
            'effective_from': self.effective_from.isoformat() if self.effective_from else None,
            'effective_to': self.effective_to.isoformat() if self.effective_to else None,
            'target_value': self.target_value,
            'amber_floor': self.amber_floor,
            'red_floor': self.red_floor,
        }
