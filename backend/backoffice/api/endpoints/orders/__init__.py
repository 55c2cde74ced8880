"""
Order API

- core: order numbers, loading, response building
- crud: list, read, create
- actions: status changes
- allocations: batch allocations per order
- stock_ops: inventory deduction on delivery
"""

from fastapi import APIRouter
from .crud import router as crud_router
from .actions import router as actions_router
from .allocations import router as allocations_router

router = APIRouter()

router.include_router(crud_router)
router.include_router(actions_router)
router.include_router(allocations_router)
