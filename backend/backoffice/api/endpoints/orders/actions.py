"""
Order status changes

Moving to processing requires saved batch allocations; see allocations.py.
"""

from typing import Any
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.config import settings
from backoffice.core.deps import get_db
from backoffice.core.logging_config import get_logger
from backoffice.models.order import Order, OrderStatusHistory
from backoffice.schemas.common import ApiResponse
from backoffice.schemas.order import OrderResponse, OrderStatusChange

from .core import STATUS_TRANSITIONS, load_order, build_order_response, count_allocations

logger = get_logger(__name__)

router = APIRouter()


def apply_status(order: Order, new_status: str, changed_by: str, notes: str = None) -> OrderStatusHistory:
    """Set the status, stamp the matching timestamp and return the history row"""
    now = datetime.utcnow()
    history = OrderStatusHistory(
        order_id=order.id,
        old_status=order.status,
        new_status=new_status,
        changed_by=changed_by,
        notes=notes)

    order.status = new_status
    if new_status == "confirmed":
        order.confirmed_at = now
        order.confirmed_by = changed_by
    elif new_status == "delivered":
        order.delivered_at = now
    elif new_status == "cancelled":
        order.cancelled_at = now
    return history


@router.put("/{order_id}/status", response_model=ApiResponse[OrderResponse])
async def change_status(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    change: OrderStatusChange) -> Any:
    """Move an order to another status"""
    order = await load_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    new_status = change.status
    if order.status == new_status:
        return ApiResponse(data=build_order_response(order), message=f"Order already {new_status}")

    if new_status not in STATUS_TRANSITIONS.get(order.status, ()):
        raise HTTPException(
            status_code=400,
            detail=f"Cannot change status from {order.status} to {new_status}")

    if new_status == "processing" and await count_allocations(db, order.id) == 0:
        raise HTTPException(status_code=400, detail="Allocate batches before processing")

    old_status = order.status
    changed_by = change.changed_by or settings.DEFAULT_CHANGED_BY
    db.add(apply_status(order, new_status, changed_by, change.notes))
    await db.commit()

    logger.info(f"Order {order.order_number}: {old_status} -> {new_status} by {changed_by}")
    order = await load_order(db, order_id)
    return ApiResponse(data=build_order_response(order), message="Status updated")
