"""Inventory ledger schemas"""
from typing import Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class InventoryEntryCreate(BaseModel):
    """Ledger row: stock received into a batch, or a correction"""
    product_id: int = Field(..., gt=0)
    batch: str = Field(..., min_length=1, max_length=100, description="Batch label")
    quantity: float = Field(..., gt=0)
    action: Literal["added", "updated"] = "added"
    unit: str = Field("kg", max_length=20)
    cost_per_kg: float = Field(0, ge=0)
    notes: Optional[str] = None
    reference_type: Literal["purchase", "manual", "adjustment", "transfer"] = "manual"
    reference_id: Optional[int] = None


class InventoryEntryResponse(BaseModel):
    id: int
    product_id: int
    product_name: str
    batch: str
    action: str
    quantity: float
    value: float
    cost_per_kg: float
    unit: str
    status: str
    notes: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductBatch(BaseModel):
    """Current balance of one batch"""
    batch: str
    total_quantity: float
    total_value: float = 0
    unit: str
    last_updated: Optional[datetime] = None
