"""Order schemas"""
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field


OrderStatus = Literal["pending", "confirmed", "processing", "out_for_delivery", "delivered", "cancelled"]


# ===== Items =====
class OrderItemCreate(BaseModel):
    """Cart line; mix lines carry their components in custom_details"""
    product_id: Optional[int] = Field(None, description="Empty for mix and unmatched custom lines")
    product_name: str = Field(..., min_length=1, max_length=255)
    quantity: float = Field(..., gt=0)
    unit: str = Field("kg", max_length=20)
    unit_price: float = Field(..., ge=0)
    total_price: Optional[float] = Field(None, ge=0, description="Defaults to quantity x unit_price")
    source: Literal["manual", "mix-calculator", "custom"] = "manual"
    mix_number: Optional[str] = None
    is_custom: bool = False
    custom_details: Optional[Dict[str, Any]] = None


class OrderItemResponse(BaseModel):
    id: int
    order_id: int
    product_id: Optional[int] = None
    product_name: str
    quantity: float
    unit: str
    unit_price: float
    total_price: float
    source: str
    mix_number: Optional[str] = None
    is_custom: bool = False
    custom_details: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class StatusHistoryResponse(BaseModel):
    id: int
    old_status: Optional[str] = None
    new_status: str
    changed_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ===== Orders =====
class OrderCreate(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_phone: str = Field(..., min_length=1, max_length=20)
    customer_email: Optional[str] = Field(None, max_length=255)
    delivery_address: str = Field(..., min_length=1)
    notes: Optional[str] = None
    delivery_fee: float = Field(0, ge=0)
    order_source: Literal["online", "phone", "walk_in", "admin"] = "online"
    items: List[OrderItemCreate] = Field(..., min_length=1)


class OrderStatusChange(BaseModel):
    status: OrderStatus
    changed_by: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class OrderResponse(BaseModel):
    id: int
    order_number: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    delivery_address: str
    notes: Optional[str] = None
    subtotal: float
    delivery_fee: float
    total_amount: float
    status: str
    order_source: str
    payment_status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    confirmed_by: Optional[str] = None
    items: List[OrderItemResponse] = []
    status_history: List[StatusHistoryResponse] = []

    class Config:
        from_attributes = True


class OrderSummary(BaseModel):
    """List row, without items"""
    id: int
    order_number: str
    customer_name: str
    customer_phone: str
    total_amount: float
    status: str
    order_source: str
    item_count: int = 0
    created_at: Optional[datetime] = None
