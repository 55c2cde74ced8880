"""Allocation schemas"""
from typing import List, Optional
from pydantic import BaseModel, Field, validator


class AllocationRecordIn(BaseModel):
    """One (unit, batch, quantity) record; order_item_id is the unit key"""
    order_item_id: str = Field(..., min_length=1, max_length=50)
    product_id: int = Field(..., gt=0)
    product_name: Optional[str] = Field("", max_length=255)
    batch: str = Field(..., min_length=1, max_length=100)
    quantity: float = Field(..., gt=0)
    unit: str = Field("kg", max_length=20)
    source: Optional[str] = None
    mix_component_index: Optional[int] = Field(None, ge=0)

    @validator("order_item_id", pre=True)
    def key_as_string(cls, v):
        if isinstance(v, bool):
            raise ValueError("order_item_id must be a key")
        if isinstance(v, (int, float)):
            return str(int(v))
        return v


class AllocationSaveRequest(BaseModel):
    allocations: List[AllocationRecordIn]


class AllocationResponse(BaseModel):
    id: int
    order_id: int
    order_item_id: str
    product_id: int
    product_name: str
    batch: str
    quantity: float
    unit: str


class DeliveryDeductionRequest(BaseModel):
    markDelivered: bool = False
