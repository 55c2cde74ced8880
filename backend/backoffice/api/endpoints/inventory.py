"""
Inventory API

The ledger is append-only; a batch's quantity is the signed sum of its rows
(see models.inventory.signed_quantity).
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, case, and_
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.deps import get_db
from backoffice.core.logging_config import get_logger
from backoffice.models.inventory import InventoryEntry, INBOUND_ACTIONS, INVENTORY_ACTIONS, signed_quantity
from backoffice.models.product import Product
from backoffice.schemas.common import ApiResponse, Page
from backoffice.schemas.inventory import InventoryEntryCreate, InventoryEntryResponse, ProductBatch

logger = get_logger(__name__)

router = APIRouter()


def _signed_value():
    return case(
        (InventoryEntry.action.in_(INBOUND_ACTIONS), InventoryEntry.value),
        (InventoryEntry.action == "deducted", -InventoryEntry.value),
        else_=0,
    )


async def batch_balances(
    db: AsyncSession,
    keys: Iterable[Tuple[int, str]]) -> Dict[Tuple[int, str], Decimal]:
    """Current quantity per (product_id, batch); missing batches are 0"""
    keys = list(dict.fromkeys(keys))
    balances = {key: Decimal("0") for key in keys}
    for product_id in {k[0] for k in keys}:
        labels = [k[1] for k in keys if k[0] == product_id]
        result = await db.execute(
            select(InventoryEntry.batch, func.sum(signed_quantity()))
            .where(
                InventoryEntry.product_id == product_id,
                InventoryEntry.batch.in_(labels),
                InventoryEntry.status != "merged")
            .group_by(InventoryEntry.batch)
        )
        for batch, total in result:
            balances[(product_id, batch)] = Decimal(str(total or 0))
    return balances


async def batch_cost_per_kg(db: AsyncSession, product_id: int, batch: str) -> Decimal:
    """Weighted purchase cost of a batch (value / quantity over inbound rows)"""
    result = await db.execute(
        select(func.sum(InventoryEntry.value), func.sum(InventoryEntry.quantity))
        .where(
            InventoryEntry.product_id == product_id,
            InventoryEntry.batch == batch,
            InventoryEntry.action.in_(INBOUND_ACTIONS),
            InventoryEntry.status != "merged")
    )
    value, quantity = result.one()
    if not quantity:
        return Decimal("0")
    return (Decimal(str(value or 0)) / Decimal(str(quantity))).quantize(Decimal("0.01"))


@router.post("/", response_model=ApiResponse[InventoryEntryResponse], status_code=201)
async def add_inventory_entry(
    *,
    db: AsyncSession = Depends(get_db),
    entry_in: InventoryEntryCreate) -> Any:
    """Record stock received into a batch"""
    product = await db.get(Product, entry_in.product_id)
    if not product:
        raise HTTPException(status_code=404, detail=f"Product {entry_in.product_id} not found")

    quantity = Decimal(str(entry_in.quantity))
    cost = Decimal(str(entry_in.cost_per_kg))
    entry = InventoryEntry(
        product_id=product.id,
        product_name=product.name,
        batch=entry_in.batch.strip(),
        action=entry_in.action,
        quantity=quantity,
        cost_per_kg=cost,
        value=(quantity * cost).quantize(Decimal("0.01")),
        unit=entry_in.unit,
        notes=entry_in.notes,
        reference_type=entry_in.reference_type,
        reference_id=entry_in.reference_id)
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    logger.info(f"Inventory {entry.action}: {product.name} batch {entry.batch} +{quantity} {entry.unit}")
    return ApiResponse(data=InventoryEntryResponse.model_validate(entry), message="Inventory entry added")


@router.get("/history", response_model=ApiResponse[Page[InventoryEntryResponse]])
async def inventory_history(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    product_id: Optional[int] = Query(None),
    batch: Optional[str] = Query(None),
    action: Optional[str] = Query(None)) -> Any:
    """Ledger rows, newest first"""
    conditions = []
    if product_id:
        conditions.append(InventoryEntry.product_id == product_id)
    if batch:
        conditions.append(InventoryEntry.batch == batch)
    if action:
        if action not in INVENTORY_ACTIONS:
            raise HTTPException(status_code=400, detail=f"Unknown action: {action}")
        conditions.append(InventoryEntry.action == action)

    query = select(InventoryEntry)
    count_query = select(func.count(InventoryEntry.id))
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0
    query = query.order_by(InventoryEntry.created_at.desc(), InventoryEntry.id.desc())
    query = query.offset((page - 1) * limit).limit(limit)
    rows = (await db.execute(query)).scalars().all()

    return ApiResponse(data=Page(
        items=[InventoryEntryResponse.model_validate(r) for r in rows],
        total=total,
        page=page,
        limit=limit))


@router.get("/product/{product_id}/batches", response_model=ApiResponse[List[ProductBatch]])
async def get_product_batches(
    *,
    db: AsyncSession = Depends(get_db),
    product_id: int) -> Any:
    """Batches of a product that still hold stock, most recently active first"""
    total_quantity = func.sum(signed_quantity())
    last_updated = func.max(InventoryEntry.created_at)
    result = await db.execute(
        select(
            InventoryEntry.batch,
            total_quantity.label("total_quantity"),
            func.sum(_signed_value()).label("total_value"),
            InventoryEntry.unit,
            last_updated.label("last_updated"))
        .where(
            InventoryEntry.product_id == product_id,
            InventoryEntry.status != "merged")
        .group_by(InventoryEntry.batch, InventoryEntry.unit)
        .having(total_quantity > 0)
        .order_by(last_updated.desc(), InventoryEntry.batch)
    )
    batches = [
        ProductBatch(
            batch=row.batch,
            total_quantity=float(row.total_quantity or 0),
            total_value=float(row.total_value or 0),
            unit=row.unit,
            last_updated=row.last_updated)
        for row in result
    ]
    return ApiResponse(data=batches)
