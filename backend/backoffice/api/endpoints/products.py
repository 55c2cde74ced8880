"""Product API"""

from typing import Any, List, Optional
from decimal import Decimal
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.deps import get_db
from backoffice.core.logging_config import get_logger
from backoffice.models.product import Product
from backoffice.schemas.common import ApiResponse
from backoffice.schemas.product import ProductCreate, ProductResponse

logger = get_logger(__name__)

router = APIRouter()

@router.get("/", response_model=ApiResponse[List[ProductResponse]])
async def list_products(
    *,
    db: AsyncSession = Depends(get_db),
    search: Optional[str] = Query(None, description="Name contains"),
    include_inactive: bool = Query(False)) -> Any:
    """List products"""
    query = select(Product)
    if not include_inactive:
        query = query.where(Product.is_active.is_(True))
    if search:
        query = query.where(Product.name.ilike(f"%{search}%"))
    result = await db.execute(query.order_by(Product.name))
    products = result.scalars().all()
    return ApiResponse(data=[ProductResponse.model_validate(p) for p in products])

@router.post("/", response_model=ApiResponse[ProductResponse], status_code=201)
async def create_product(
    *,
    db: AsyncSession = Depends(get_db),
    product_in: ProductCreate) -> Any:
    """Create a product"""
    product = Product(
        name=product_in.name.strip(),
        unit=product_in.unit,
        retail_price=Decimal(str(product_in.retail_price)))
    db.add(product)
    await db.commit()
    await db.refresh(product)
    logger.info(f"Product created: {product.id} {product.name}")
    return ApiResponse(data=ProductResponse.model_validate(product), message="Product created")
