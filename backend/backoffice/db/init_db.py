import asyncio

from backoffice.db.session import engine
from backoffice.db.base import Base

# register every model on Base.metadata
from backoffice.models import (  # noqa: F401
    Product, Order, OrderItem, OrderStatusHistory,
    InventoryEntry, OrderInventoryAllocation
)


async def ensure_tables_exist() -> None:
    """
    Create missing tables (called on application startup)
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


if __name__ == "__main__":
    asyncio.run(ensure_tables_exist())
