from backoffice.models.product import Product
from backoffice.models.order import Order, OrderItem, OrderStatusHistory
from backoffice.models.inventory import InventoryEntry
from backoffice.models.allocation import OrderInventoryAllocation

__all__ = [
    "Product",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "InventoryEntry",
    "OrderInventoryAllocation",
]
