"""
Order batch allocations

One row per (allocation unit, batch). The unit is identified by an opaque
key: the order item id for a regular line, "<itemId>::<componentIndex>" for
a mix component. order_item_id is only filled for regular lines.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, DECIMAL
from sqlalchemy.orm import relationship
from backoffice.db.base import Base


class OrderInventoryAllocation(Base):
    __tablename__ = "order_inventory_allocations"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    order_item_key = Column(String(50), nullable=False, index=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id", ondelete="SET NULL"))

    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    product_name = Column(String(255), nullable=False, default="")
    batch = Column(String(100), nullable=False, index=True)
    quantity = Column(DECIMAL(10, 3), nullable=False)
    unit = Column(String(20), nullable=False, default="kg")

    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="allocations")

    def __repr__(self):
        return f"<OrderInventoryAllocation {self.order_item_key} {self.batch}: {self.quantity}>"
