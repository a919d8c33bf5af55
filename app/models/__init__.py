# Models
from .inventory_items import InventoryItem
from .inventory_reservations import InventoryReservation, ReservationStatus
from .inventory_logs import InventoryLog, ChangeType
from .orders import Order, OrderItem, OrderStatus

__all__ = [
    "InventoryItem",
    "InventoryReservation",
    "ReservationStatus",
    "InventoryLog",
    "ChangeType",
    "Order",
    "OrderItem",
    "OrderStatus",
]
