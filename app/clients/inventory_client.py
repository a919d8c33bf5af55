from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import quote

from app.clients.base import ServiceClient


class InventoryClient(ServiceClient):
    """库存服务内部接口（订单 Saga 的远程步骤）"""

    service_name = "库存服务"

    def reserve(
        self,
        order_id: int,
        product_id: int,
        quantity: int,
        expires_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/internal/reservations",
            json={
                "orderId": order_id,
                "productId": product_id,
                "quantity": quantity,
                "expiresAt": expires_at.isoformat() if expires_at else None,
            },
        )

    def release_order(self, order_id: int, reason: Optional[str] = None) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/internal/orders/{quote(str(order_id))}/release",
            json={"reason": reason} if reason else {},
        )

    def confirm_order(self, order_id: int) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/internal/orders/{quote(str(order_id))}/confirm",
            json={},
        )
