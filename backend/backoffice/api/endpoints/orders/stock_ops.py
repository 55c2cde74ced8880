"""
Order inventory operations
- availability check for a set of allocation rows
- deduction of allocated batches when an order is delivered
"""

from typing import Dict, Iterable, Tuple
from decimal import Decimal
from fastapi import HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.logging_config import get_logger
from backoffice.models.inventory import InventoryEntry
from backoffice.models.order import Order
from backoffice.models.allocation import OrderInventoryAllocation
from backoffice.api.endpoints.inventory import batch_balances, batch_cost_per_kg

logger = get_logger(__name__)

# tolerance for comparing stored 3-decimal quantities
STOCK_EPSILON = Decimal("0.0005")


async def check_availability(
    db: AsyncSession,
    requested: Iterable[Tuple[int, str, str, Decimal]]) -> None:
    """
    requested: (product_id, product_name, batch, quantity) rows

    Quantities are summed per (product, batch) first, so two units drawing
    from the same batch are checked together.

    Raises:
        HTTPException 400: a batch holds less than what is asked of it
    """
    needed: Dict[Tuple[int, str], Decimal] = {}
    names: Dict[int, str] = {}
    for product_id, product_name, batch, quantity in requested:
        key = (product_id, batch)
        needed[key] = needed.get(key, Decimal("0")) + Decimal(str(quantity))
        names.setdefault(product_id, product_name)

    balances = await batch_balances(db, needed.keys())
    for (product_id, batch), quantity in needed.items():
        available = balances.get((product_id, batch), Decimal("0"))
        if available + STOCK_EPSILON < quantity:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Insufficient stock in batch {batch} for {names.get(product_id) or product_id}. "
                    f"Available {available.normalize():f}, requested {quantity.normalize():f}"))


async def already_deducted(db: AsyncSession, order_id: int) -> bool:
    result = await db.execute(
        select(func.count(InventoryEntry.id)).where(
            InventoryEntry.reference_type == "transfer",
            InventoryEntry.reference_id == order_id,
            InventoryEntry.action == "deducted")
    )
    return (result.scalar() or 0) > 0


async def deduct_allocations(db: AsyncSession, order: Order) -> int:
    """
    Write one 'deducted' ledger row per allocation row of the order

    Nothing is committed here; returns the number of rows written.

    Raises:
        HTTPException 400: no allocations, already deducted, or stock ran out since allocation
    """
    result = await db.execute(
        select(OrderInventoryAllocation)
        .where(OrderInventoryAllocation.order_id == order.id)
        .order_by(OrderInventoryAllocation.id)
    )
    allocations = result.scalars().all()
    if not allocations:
        raise HTTPException(status_code=400, detail="No allocations found for this order")

    if await already_deducted(db, order.id):
        raise HTTPException(status_code=400, detail="Inventory already deducted for this order")

    await check_availability(
        db, ((a.product_id, a.product_name, a.batch, a.quantity) for a in allocations))

    for alloc in allocations:
        quantity = Decimal(str(alloc.quantity))
        cost = await batch_cost_per_kg(db, alloc.product_id, alloc.batch)
        db.add(InventoryEntry(
            product_id=alloc.product_id,
            product_name=alloc.product_name,
            batch=alloc.batch,
            action="deducted",
            quantity=quantity,
            cost_per_kg=cost,
            value=(quantity * cost).quantize(Decimal("0.01")),
            unit=alloc.unit,
            notes=f"Order {order.order_number} delivery",
            reference_type="transfer",
            reference_id=order.id))
        logger.info(f"Deducted {quantity} {alloc.unit} of {alloc.product_name} from batch {alloc.batch}")

    return len(allocations)
