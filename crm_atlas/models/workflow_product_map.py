"""
WorkflowProductMap model — manual workflow_id → product assignment.

Takes precedence over flows.iterable_id when resolving a snapshot's product.
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from crm_atlas.database import Base
from crm_atlas.models.product import Product


class WorkflowProductMap(Base):
    __tablename__ = 'workflow_product_map'

    id = Column(Integer, primary_key=True, autoincrement=True)
    workflow_id = Column(Text, nullable=False, unique=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship(Product, lazy='joined')

    def to_dict(self):
        return {
            'workflow_id': self.workflow_id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
        }
