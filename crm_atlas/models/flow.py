"""
Flow model — one lifecycle-messaging flow (journey) for a product.

channels is a JSON list drawn from config.CHANNELS. iterable_id is the
external workflow id that metric snapshots are keyed by.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from crm_atlas.database import Base
from crm_atlas.models.product import Product


class Flow(Base):
    __tablename__ = 'flows'
    __table_args__ = (
        UniqueConstraint('product_id', 'name', name='uq_flow_product_name'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=True, index=True)
    name = Column(Text, nullable=False)
    purpose = Column(Text, nullable=False, default='retention')    # activation/retention/winback/transactional
    description = Column(Text, nullable=True)
    trigger_type = Column(Text, nullable=False, default='event_based')
    frequency = Column(Text, nullable=True)                        # free text, e.g. "Daily", "Once"
    channels = Column(JSON, nullable=False, default=list)
    live = Column(Boolean, nullable=False, default=False)
    sto = Column(Boolean, nullable=False, default=False)           # send-time optimisation
    iterable_id = Column(Text, nullable=True, index=True)
    priority = Column(Integer, nullable=True)                      # 1-100, lower = higher priority
    max_frequency_per_user_days = Column(Integer, nullable=True)
    suppression_rules = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship(Product, lazy='joined')

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'name': self.name,
            'purpose': self.purpose,
            'description': self.description,
            'trigger_type': self.trigger_type,
            'frequency': self.frequency,
            'channels': list(self.channels or []),
            'live': bool(self.live),
            'sto': bool(self.sto),
            'iterable_id': self.iterable_id,
            'priority': self.priority,
            'max_frequency_per_user_days': self.max_frequency_per_user_days,
            'suppression_rules': self.suppression_rules,
        }
