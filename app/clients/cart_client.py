from typing import Any, Dict, Optional

from app.clients.base import ServiceClient
from app.core.exceptions import Unauthorized, Unavailable


def to_authorization_header(authorization: Optional[str]) -> str:
    if not isinstance(authorization, str) or not authorization.strip():
        return ""
    value = authorization.strip()
    return value if value.startswith("Bearer ") else f"Bearer {value}"


class CartClient(ServiceClient):
    """购物车服务：以当前用户身份读取其购物车"""

    service_name = "购物车服务"

    def fetch_my_cart(self, authorization: Optional[str]) -> Dict[str, Any]:
        auth_header = to_authorization_header(authorization)
        if not auth_header:
            raise Unauthorized("Unauthorized")

        payload = self._request("GET", "/carts/me", headers={"Authorization": auth_header})
        if not isinstance(payload, dict) or not payload.get("id"):
            raise Unavailable("购物车不可用")
        return payload
