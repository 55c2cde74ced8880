"""
Order core helpers
- order number generation
- loading with relationships
- response building
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.models.order import Order
from backoffice.models.allocation import OrderInventoryAllocation
from backoffice.schemas.order import OrderResponse, OrderItemResponse, StatusHistoryResponse, OrderSummary


# status -> statuses it may move to
STATUS_TRANSITIONS = {
    "pending": ("confirmed", "processing", "cancelled"),
    "confirmed": ("processing", "cancelled"),
    "processing": ("out_for_delivery", "cancelled"),
    "out_for_delivery": ("delivered", "cancelled"),
    "delivered": (),
    "cancelled": (),
}


async def generate_order_number(db: AsyncSession) -> str:
    """ORD + date + 3 digit sequence of the day"""
    date_str = datetime.now().strftime("%Y%m%d")
    prefix = f"ORD{date_str}"

    result = await db.execute(
        select(func.max(Order.order_number)).where(Order.order_number.like(f"{prefix}%"))
    )
    max_no = result.scalar()

    if max_no:
        try:
            seq = int(max_no[-3:]) + 1
        except ValueError:
            seq = 1
    else:
        seq = 1

    return f"{prefix}{seq:03d}"


def base_order_query():
    return select(Order).options(
        selectinload(Order.items),
        selectinload(Order.status_history))


async def load_order(db: AsyncSession, order_id: int) -> Optional[Order]:
    """Order with items and history; collections are re-read from the database"""
    result = await db.execute(
        base_order_query()
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def count_allocations(db: AsyncSession, order_id: int) -> int:
    result = await db.execute(
        select(func.count(OrderInventoryAllocation.id))
        .where(OrderInventoryAllocation.order_id == order_id)
    )
    return result.scalar() or 0


def build_order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        customer_email=order.customer_email,
        delivery_address=order.delivery_address,
        notes=order.notes,
        subtotal=float(order.subtotal or 0),
        delivery_fee=float(order.delivery_fee or 0),
        total_amount=float(order.total_amount or 0),
        status=order.status,
        order_source=order.order_source,
        payment_status=order.payment_status,
        created_at=order.created_at,
        updated_at=order.updated_at,
        confirmed_at=order.confirmed_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        confirmed_by=order.confirmed_by,
        items=[OrderItemResponse.model_validate(item) for item in order.items],
        status_history=[StatusHistoryResponse.model_validate(h) for h in order.status_history])


def build_order_summary(order: Order) -> OrderSummary:
    return OrderSummary(
        id=order.id,
        order_number=order.order_number,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        total_amount=float(order.total_amount or 0),
        status=order.status,
        order_source=order.order_source,
        item_count=len(order.items),
        created_at=order.created_at)
