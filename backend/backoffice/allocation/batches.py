"""Batch availability snapshots and per-batch allocation entries"""

from typing import Any, Iterable, List, Mapping

from pydantic import BaseModel, Field, validator

from backoffice.allocation.formatting import to_float
from backoffice.allocation.mix import QUANTITY_DECIMALS


class BatchAvailability(BaseModel):
    """What one batch of a product holds at fetch time"""
    batch: str
    total_quantity: float = 0.0
    unit: str = "kg"

    @classmethod
    def from_api(cls, row: Mapping[str, Any], default_unit: str = "kg") -> "BatchAvailability":
        return cls(
            batch=str(row.get("batch")),
            total_quantity=to_float(row.get("total_quantity")),
            unit=row.get("unit") or default_unit,
        )


class AllocationEntry(BaseModel):
    """Quantity taken from one batch for one allocation unit"""
    batch: str
    quantity: float = Field(..., ge=0)
    unit: str = "kg"

    @validator("quantity")
    def stored_scale(cls, v):
        return round(v, QUANTITY_DECIMALS)


def total_quantity(entries: Iterable[AllocationEntry]) -> float:
    return sum(e.quantity for e in entries)


def merge_entries(entries: Iterable[AllocationEntry]) -> List[AllocationEntry]:
    """Fold repeated batches into one entry each, keeping first-seen order"""
    merged = {}
    for entry in entries:
        if entry.batch in merged:
            current = merged[entry.batch]
            merged[entry.batch] = current.model_copy(update={"quantity": current.quantity + entry.quantity})
        else:
            merged[entry.batch] = entry.model_copy()
    return list(merged.values())
