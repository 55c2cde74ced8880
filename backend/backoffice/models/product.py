"""Product catalogue - the things batches and order lines point at"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DateTime, DECIMAL, Boolean
from backoffice.db.base import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    unit = Column(String(20), nullable=False, default="kg", comment="Selling unit")
    retail_price = Column(DECIMAL(10, 2), nullable=False, default=Decimal("0.00"))
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Product {self.id}: {self.name}>"
