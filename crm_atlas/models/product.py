"""
Product model — a consumer product line that owns messaging flows.
"""
from sqlalchemy import Column, Integer, Text, DateTime
from sqlalchemy.sql import func

from crm_atlas.database import Base


class Product(Base):
    __tablename__ = 'products'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
        }
