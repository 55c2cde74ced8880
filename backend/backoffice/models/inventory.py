"""
Inventory ledger

Stock is never stored as a running number per batch. Every receipt,
correction and delivery deduction is a row here and the quantity a batch
holds is the signed sum of its rows.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, case
from sqlalchemy.orm import relationship
from backoffice.db.base import Base


INVENTORY_ACTIONS = ("added", "updated", "deducted", "merged")
INBOUND_ACTIONS = ("added", "updated", "merged")


class InventoryEntry(Base):
    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True, index=True)

    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)

    batch = Column(String(100), nullable=False, index=True, comment="Batch label")

    # added / updated / merged increase a batch, deducted reduces it
    action = Column(String(20), nullable=False, default="added", index=True)

    quantity = Column(DECIMAL(10, 3), nullable=False, default=Decimal("0.000"))
    value = Column(DECIMAL(10, 2), nullable=False, default=Decimal("0.00"))
    cost_per_kg = Column(DECIMAL(10, 2), nullable=False, default=Decimal("0.00"))
    unit = Column(String(20), nullable=False, default="kg")

    # rows folded into another batch are kept with status "merged"
    status = Column(String(20), nullable=False, default="active", index=True)
    notes = Column(Text)

    reference_type = Column(String(20), default="manual")
    reference_id = Column(Integer, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product")

    def __repr__(self):
        return f"<InventoryEntry {self.batch} {self.action} {self.quantity}>"


def signed_quantity():
    """SQL expression: the row's quantity with the sign of its action"""
    return case(
        (InventoryEntry.action.in_(INBOUND_ACTIONS), InventoryEntry.quantity),
        (InventoryEntry.action == "deducted", -InventoryEntry.quantity),
        else_=0,
    )
