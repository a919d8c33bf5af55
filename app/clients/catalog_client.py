from urllib.parse import quote

from app.clients.base import ServiceClient
from app.core.exceptions import NotFound, Unavailable


class CatalogClient(ServiceClient):
    """商品服务：只用到存在性检查"""

    service_name = "商品服务"

    def assert_product_exists(self, product_id: int) -> None:
        try:
            payload = self._request("GET", f"/internal/products/{quote(str(product_id))}/exists")
        except NotFound:
            raise NotFound("商品不存在")

        if not isinstance(payload, dict) or payload.get("exists") is not True:
            raise Unavailable("无法确认商品是否存在")
