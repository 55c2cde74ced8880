"""
Order models

An order line is either a regular product line or a mix line. A mix line has
no product of its own; its components live in custom_details as a JSON
payload written once at order creation.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, Boolean, JSON
from sqlalchemy.orm import relationship
from backoffice.db.base import Base


ORDER_STATUSES = (
    "pending",
    "confirmed",
    "processing",
    "out_for_delivery",
    "delivered",
    "cancelled",
)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)

    # ORD + date + sequence, e.g. ORD20250604001
    order_number = Column(String(50), unique=True, nullable=False, index=True)

    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(20), nullable=False, index=True)
    customer_email = Column(String(255))
    delivery_address = Column(Text, nullable=False)
    notes = Column(Text)

    subtotal = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    delivery_fee = Column(DECIMAL(10, 2), nullable=False, default=Decimal("0.00"))
    total_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))

    status = Column(String(20), nullable=False, default="pending", index=True)
    order_source = Column(String(20), nullable=False, default="online", index=True)
    payment_status = Column(String(20), nullable=False, default="pending")

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    confirmed_at = Column(DateTime)
    delivered_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    confirmed_by = Column(String(255))

    items = relationship(
        "OrderItem", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    status_history = relationship(
        "OrderStatusHistory", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderStatusHistory.id.desc()"
    )
    allocations = relationship(
        "OrderInventoryAllocation", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderInventoryAllocation.id"
    )

    def __repr__(self):
        return f"<Order {self.order_number} ({self.status})>"

    def recalculate_totals(self):
        self.subtotal = sum((item.total_price or Decimal("0")) for item in self.items)
        self.total_amount = self.subtotal + (self.delivery_fee or Decimal("0"))


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    # NULL for mix lines and unmatched custom lines
    product_id = Column(Integer, ForeignKey("products.id"), index=True)
    product_name = Column(String(255), nullable=False)

    quantity = Column(DECIMAL(10, 3), nullable=False)
    unit = Column(String(20), nullable=False, default="kg")
    unit_price = Column(DECIMAL(10, 2), nullable=False, default=Decimal("0.00"))
    total_price = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))

    source = Column(String(20), nullable=False, default="manual", index=True)
    mix_number = Column(String(20), index=True)
    is_custom = Column(Boolean, default=False)
    custom_details = Column(JSON)

    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    def __repr__(self):
        return f"<OrderItem {self.id}: {self.product_name} x {self.quantity} {self.unit}>"

    @property
    def is_mix(self) -> bool:
        return self.source == "mix-calculator"


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(String(50))
    new_status = Column(String(50), nullable=False)
    changed_by = Column(String(255))
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    order = relationship("Order", back_populates="status_history")

    def __repr__(self):
        return f"<OrderStatusHistory {self.order_id}: {self.old_status} -> {self.new_status}>"
