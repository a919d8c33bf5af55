from urllib.parse import quote

from app.clients.base import ServiceClient
from app.core.exceptions import NotFound, Unavailable


class OrderClient(ServiceClient):
    """订单服务：库存服务在预占 / 释放 / 确认前用它确认订单存在"""

    service_name = "订单服务"

    def assert_order_exists(self, order_id: int) -> None:
        try:
            payload = self._request("GET", f"/internal/orders/{quote(str(order_id))}/exists")
        except NotFound:
            raise NotFound("订单不存在")

        if not isinstance(payload, dict) or payload.get("exists") is not True:
            raise Unavailable("无法确认订单是否存在")
