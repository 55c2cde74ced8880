"""
Order batch allocations

An allocation row ties one allocation unit (regular line or mix component)
to one inventory batch. Saving replaces every row of the order at once.
"""

from typing import Any, Dict, List, Optional, Tuple
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.allocation.errors import MixPayloadError
from backoffice.allocation.mix import parse_mix_payload
from backoffice.allocation.units import split_unit_key
from backoffice.core.config import settings
from backoffice.core.deps import get_db
from backoffice.core.logging_config import get_logger
from backoffice.models.allocation import OrderInventoryAllocation
from backoffice.models.order import Order, OrderItem
from backoffice.schemas.allocation import (
    AllocationRecordIn, AllocationResponse, AllocationSaveRequest, DeliveryDeductionRequest
)
from backoffice.schemas.common import ApiResponse
from backoffice.schemas.order import OrderResponse

from .actions import apply_status
from .core import load_order, build_order_response
from .stock_ops import check_availability, deduct_allocations

logger = get_logger(__name__)

router = APIRouter()


def _resolve_record(
        order: Order,
        items: Dict[str, OrderItem],
        record: AllocationRecordIn) -> Tuple[OrderItem, Optional[int]]:
    """
    The order line a record belongs to, and the mix component index (None for a regular line)

    Raises:
        HTTPException 400: the key does not name a line (or mix component) of this order
    """
    try:
        parent, index = split_unit_key(record.order_item_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    item = items.get(parent)
    if item is None:
        raise HTTPException(
            status_code=400,
            detail=f"Allocation key {record.order_item_id} does not belong to order {order.order_number}")

    if index is None:
        if item.is_mix:
            raise HTTPException(
                status_code=400,
                detail=f"Item {item.id} is a mix; allocate its components instead")
        if item.product_id != record.product_id:
            raise HTTPException(
                status_code=400,
                detail=f"Product {record.product_id} does not match item {item.id}")
        return item, None

    if not item.is_mix:
        raise HTTPException(
            status_code=400,
            detail=f"Allocation key {record.order_item_id} points into item {item.id}, which is not a mix")
    try:
        components = parse_mix_payload(item.custom_details, default_unit=settings.DEFAULT_UNIT).components
    except MixPayloadError as e:
        raise HTTPException(status_code=400, detail=f"Item {item.id}: {e}")
    if index >= len(components) or components[index].product_id != record.product_id:
        raise HTTPException(
            status_code=400,
            detail=f"Allocation key {record.order_item_id} does not match a component of item {item.id}")
    return item, index


@router.get("/{order_id}/allocations", response_model=ApiResponse[List[AllocationResponse]])
async def get_allocations(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int) -> Any:
    """Saved allocation rows; order_item_id carries the unit key"""
    if not await db.get(Order, order_id):
        raise HTTPException(status_code=404, detail="Order not found")

    result = await db.execute(
        select(OrderInventoryAllocation)
        .where(OrderInventoryAllocation.order_id == order_id)
        .order_by(OrderInventoryAllocation.id)
    )
    rows = [
        AllocationResponse(
            id=a.id,
            order_id=a.order_id,
            order_item_id=a.order_item_key,
            product_id=a.product_id,
            product_name=a.product_name,
            batch=a.batch,
            quantity=float(a.quantity),
            unit=a.unit)
        for a in result.scalars().all()
    ]
    return ApiResponse(data=rows)


@router.post("/{order_id}/allocations", response_model=ApiResponse[dict])
async def save_allocations(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    request: AllocationSaveRequest) -> Any:
    """Replace every allocation row of the order"""
    order = await load_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if not request.allocations:
        raise HTTPException(status_code=400, detail="Allocations array is required")
    if order.status in ("delivered", "cancelled"):
        raise HTTPException(status_code=400, detail=f"Order is {order.status}; allocations are locked")

    items = {str(item.id): item for item in order.items}
    rows = []
    for record in request.allocations:
        item, index = _resolve_record(order, items, record)
        rows.append(OrderInventoryAllocation(
            order_id=order.id,
            order_item_key=record.order_item_id,
            order_item_id=item.id if index is None else None,
            product_id=record.product_id,
            product_name=record.product_name or item.product_name,
            batch=record.batch,
            quantity=Decimal(str(record.quantity)),
            unit=record.unit))

    await check_availability(
        db, ((r.product_id, r.product_name, r.batch, r.quantity) for r in rows))

    await db.execute(
        delete(OrderInventoryAllocation).where(OrderInventoryAllocation.order_id == order.id)
    )
    db.add_all(rows)
    await db.commit()

    logger.info(f"Order {order.order_number}: saved {len(rows)} allocation row(s)")
    return ApiResponse(data={"count": len(rows)}, message="Allocations saved")


@router.post("/{order_id}/deliver-with-deduction", response_model=ApiResponse[OrderResponse])
async def deliver_with_deduction(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    request: Optional[DeliveryDeductionRequest] = None) -> Any:
    """Deduct the allocated batches from inventory, optionally marking the order delivered"""
    order = await load_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order.status == "cancelled":
        raise HTTPException(status_code=400, detail="Order is cancelled")

    count = await deduct_allocations(db, order)
    if request and request.markDelivered and order.status != "delivered":
        db.add(apply_status(
            order, "delivered", settings.DEFAULT_CHANGED_BY,
            "Marked delivered after inventory deduction"))
    await db.commit()

    logger.info(f"Order {order.order_number}: inventory deducted for {count} allocation row(s)")
    order = await load_order(db, order_id)
    return ApiResponse(data=build_order_response(order), message="Inventory deducted")
