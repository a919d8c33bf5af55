from .base import ServiceClient
from .catalog_client import CatalogClient
from .order_client import OrderClient
from .cart_client import CartClient
from .inventory_client import InventoryClient

__all__ = [
    "ServiceClient",
    "CatalogClient",
    "OrderClient",
    "CartClient",
    "InventoryClient",
]
