"""Product schemas"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    unit: str = Field("kg", max_length=20)
    retail_price: float = Field(0, ge=0)


class ProductResponse(BaseModel):
    id: int
    name: str
    unit: str
    retail_price: float
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
