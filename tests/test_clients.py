"""下游服务客户端单元测试"""
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
import requests

from app.clients import CartClient, CatalogClient, InventoryClient, OrderClient
from app.core.exceptions import (
    Conflict,
    InsufficientStock,
    InvalidInput,
    NotFound,
    Unauthorized,
    Unavailable,
)


def _response(status_code=200, payload=None):
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.content = b"{}" if payload is not None else b""
    response.json.return_value = payload
    return response


@pytest.fixture
def http():
    return Mock(spec=requests.Session)


class TestServiceClient:
    """错误映射测试类"""

    def test_timeout_is_unavailable(self, http):
        http.request.side_effect = requests.exceptions.Timeout("read timed out")
        client = CatalogClient("http://catalog/", timeout=1.5, session=http)

        with pytest.raises(Unavailable) as exc_info:
            client.assert_product_exists(9)

        assert exc_info.value.message == "商品服务请求超时"
        http.request.assert_called_once_with(
            "GET",
            "http://catalog/internal/products/9/exists",
            json=None,
            headers=None,
            timeout=1.5,
        )

    def test_connection_error_is_unavailable(self, http):
        http.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(Unavailable):
            OrderClient("http://orders", session=http).assert_order_exists(5)

    def test_not_found(self, http):
        http.request.return_value = _response(404, {"success": False, "message": "Product not found"})

        with pytest.raises(NotFound) as exc_info:
            CatalogClient("http://catalog", session=http).assert_product_exists(9)

        assert exc_info.value.message == "商品不存在"

    def test_exists_must_be_true(self, http):
        http.request.return_value = _response(200, {"exists": False})

        with pytest.raises(Unavailable):
            OrderClient("http://orders", session=http).assert_order_exists(5)

    def test_success(self, http):
        http.request.return_value = _response(200, {"exists": True})

        assert CatalogClient("http://catalog", session=http).assert_product_exists(9) is None

    @pytest.mark.parametrize("status_code", [401, 403, 500, 503])
    def test_auth_and_server_errors_are_unavailable(self, http, status_code):
        http.request.return_value = _response(status_code, {"message": "boom"})

        with pytest.raises(Unavailable):
            OrderClient("http://orders", session=http).assert_order_exists(5)

    def test_error_code_restores_exception_type(self, http):
        http.request.return_value = _response(
            409,
            {"success": False, "message": "库存不足", "code": "insufficient_stock", "availableQuantity": 1},
        )

        with pytest.raises(InsufficientStock) as exc_info:
            InventoryClient("http://inventory", session=http).reserve(5, 9, 2)

        assert exc_info.value.available_quantity == 1
        assert exc_info.value.status_code == 409

    def test_status_code_fallback(self, http):
        http.request.return_value = _response(409, None)
        with pytest.raises(Conflict):
            InventoryClient("http://inventory", session=http).confirm_order(5)

        http.request.return_value = _response(400, {"message": "Invalid quantity"})
        with pytest.raises(InvalidInput) as exc_info:
            InventoryClient("http://inventory", session=http).confirm_order(5)
        assert exc_info.value.message == "Invalid quantity"

    def test_invalid_json_body(self, http):
        response = _response(502, {})
        response.json.side_effect = ValueError("not json")
        http.request.return_value = response

        with pytest.raises(Unavailable) as exc_info:
            InventoryClient("http://inventory", session=http).confirm_order(5)

        assert exc_info.value.message == "库存服务不可用"


class TestCartClient:
    """购物车客户端测试类"""

    def test_requires_authorization(self, http):
        with pytest.raises(Unauthorized):
            CartClient("http://cart", session=http).fetch_my_cart(None)
        http.request.assert_not_called()

    def test_adds_bearer_prefix(self, http):
        http.request.return_value = _response(200, {"id": 1, "items": []})

        cart = CartClient("http://cart", session=http).fetch_my_cart("abc")

        assert cart["id"] == 1
        assert http.request.call_args.kwargs["headers"] == {"Authorization": "Bearer abc"}

    def test_cart_without_id_is_unavailable(self, http):
        http.request.return_value = _response(200, {"items": []})

        with pytest.raises(Unavailable):
            CartClient("http://cart", session=http).fetch_my_cart("Bearer abc")


class TestInventoryClient:
    """库存客户端请求体测试类"""

    def test_reserve_body(self, http):
        http.request.return_value = _response(201, {"success": True})
        expires_at = datetime(2030, 1, 1, 0, 15, tzinfo=timezone.utc)

        InventoryClient("http://inventory", session=http).reserve(5, 9, 2, expires_at)

        args, kwargs = http.request.call_args
        assert args == ("POST", "http://inventory/internal/reservations")
        assert kwargs["json"] == {
            "orderId": 5,
            "productId": 9,
            "quantity": 2,
            "expiresAt": "2030-01-01T00:15:00+00:00",
        }

    def test_release_order_body(self, http):
        http.request.return_value = _response(200, {"success": True})
        client = InventoryClient("http://inventory", session=http)

        client.release_order(5, "order_cancelled")
        assert http.request.call_args.kwargs["json"] == {"reason": "order_cancelled"}

        client.release_order(5)
        assert http.request.call_args.kwargs["json"] == {}
        assert http.request.call_args.args[1] == "http://inventory/internal/orders/5/release"
