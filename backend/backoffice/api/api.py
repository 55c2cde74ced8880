"""API router aggregation"""
from fastapi import APIRouter

from backoffice.api.endpoints import products, inventory
from backoffice.api.endpoints.orders import router as orders_router

api_router = APIRouter()

api_router.include_router(products.router, prefix="/products", tags=["Products"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["Inventory"])
api_router.include_router(orders_router, prefix="/orders", tags=["Orders"])
