"""
Order CRUD
- list
- read
- create
"""

from typing import Any, List, Optional
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.allocation.errors import MixPayloadError
from backoffice.allocation.mix import parse_mix_payload
from backoffice.core.config import settings
from backoffice.core.deps import get_db
from backoffice.core.logging_config import get_logger
from backoffice.models.order import Order, OrderItem, OrderStatusHistory, ORDER_STATUSES
from backoffice.models.product import Product
from backoffice.schemas.common import ApiResponse, Page
from backoffice.schemas.order import OrderCreate, OrderItemCreate, OrderResponse, OrderSummary

from .core import generate_order_number, base_order_query, load_order, build_order_response, build_order_summary

logger = get_logger(__name__)

router = APIRouter()


def _money(value: float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


async def _build_item(db: AsyncSession, index: int, item_in: OrderItemCreate) -> OrderItem:
    custom_details = item_in.custom_details
    mix_number = item_in.mix_number
    product_id = item_in.product_id

    if item_in.source == "mix-calculator":
        try:
            payload = parse_mix_payload(custom_details, default_unit=settings.DEFAULT_UNIT)
        except MixPayloadError as e:
            raise HTTPException(status_code=400, detail=f"Item {index + 1}: {e}")
        custom_details = payload.to_storage()
        mix_number = mix_number or payload.mix_number
        product_id = None
    elif product_id is not None:
        if not await db.get(Product, product_id):
            raise HTTPException(status_code=400, detail=f"Item {index + 1}: product {product_id} not found")

    quantity = Decimal(str(item_in.quantity))
    unit_price = _money(item_in.unit_price)
    if item_in.total_price is not None:
        total_price = _money(item_in.total_price)
    else:
        total_price = (quantity * unit_price).quantize(Decimal("0.01"))

    return OrderItem(
        product_id=product_id,
        product_name=item_in.product_name,
        quantity=quantity,
        unit=item_in.unit,
        unit_price=unit_price,
        total_price=total_price,
        source=item_in.source,
        mix_number=mix_number,
        is_custom=item_in.is_custom or item_in.source == "custom",
        custom_details=custom_details)


@router.get("/", response_model=ApiResponse[Page[OrderSummary]])
async def list_orders(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Order number, customer name or phone")) -> Any:
    """List orders, newest first"""
    conditions = []
    if status:
        if status not in ORDER_STATUSES:
            raise HTTPException(status_code=400, detail=f"Unknown status: {status}")
        conditions.append(Order.status == status)
    if search:
        conditions.append(or_(
            Order.order_number.ilike(f"%{search}%"),
            Order.customer_name.ilike(f"%{search}%"),
            Order.customer_phone.ilike(f"%{search}%")))

    query = base_order_query()
    count_query = select(func.count(Order.id))
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0
    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    query = query.offset((page - 1) * limit).limit(limit)
    orders = (await db.execute(query)).scalars().all()

    return ApiResponse(data=Page(
        items=[build_order_summary(o) for o in orders],
        total=total,
        page=page,
        limit=limit))


@router.get("/{order_id}", response_model=ApiResponse[OrderResponse])
async def get_order(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int) -> Any:
    """Order with items and status history"""
    order = await load_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return ApiResponse(data=build_order_response(order))


@router.post("/", response_model=ApiResponse[OrderResponse], status_code=201)
async def create_order(
    *,
    db: AsyncSession = Depends(get_db),
    order_in: OrderCreate) -> Any:
    """Create an order in pending status"""
    items: List[OrderItem] = []
    for index, item_in in enumerate(order_in.items):
        items.append(await _build_item(db, index, item_in))

    order = Order(
        order_number=await generate_order_number(db),
        customer_name=order_in.customer_name,
        customer_phone=order_in.customer_phone,
        customer_email=order_in.customer_email,
        delivery_address=order_in.delivery_address,
        notes=order_in.notes,
        delivery_fee=_money(order_in.delivery_fee),
        order_source=order_in.order_source,
        status="pending",
        items=items)
    order.recalculate_totals()
    order.status_history = [OrderStatusHistory(
        old_status=None,
        new_status="pending",
        changed_by=settings.DEFAULT_CHANGED_BY,
        notes="Order created")]

    db.add(order)
    await db.commit()

    logger.info(f"Order {order.order_number} created with {len(items)} item(s)")
    order = await load_order(db, order.id)
    return ApiResponse(data=build_order_response(order), message="Order created")
