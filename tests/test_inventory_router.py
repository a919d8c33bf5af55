"""库存路由单元测试"""
import json
from unittest.mock import patch

from app.core.exceptions import NotFound, Unavailable
from app.models.inventory_items import InventoryItem


class TestInventoryRouter:
    """库存公开接口测试类"""

    def test_get_inventory(self, client, make_stock):
        """测试查询库存返回 camelCase 字段"""
        make_stock(9, 10, reserved=2)

        response = client.get("/inventory/9")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["productId"] == 9
        assert data["totalQuantity"] == 10
        assert data["reservedQuantity"] == 2
        assert data["availableQuantity"] == 8
        assert data["createdAt"] is not None

    def test_get_inventory_from_cache(self, client, mock_redis):
        mock_redis.get.return_value = json.dumps({
            "product_id": 9,
            "total_quantity": 5,
            "reserved_quantity": 1,
            "available_quantity": 4,
            "created_at": None,
            "updated_at": None,
        })

        response = client.get("/inventory/9")

        assert response.status_code == 200
        assert response.json()["availableQuantity"] == 4

    def test_get_inventory_not_found(self, client):
        response = client.get("/inventory/404")

        assert response.status_code == 404
        data = response.json()
        assert data == {"success": False, "message": "Inventory item not found", "code": "not_found"}

    def test_get_inventory_invalid_id(self, client):
        response = client.get("/inventory/0")

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_input"

    def test_get_inventory_unknown_exception(self, client):
        """测试未知异常统一返回 500"""
        with patch(
            "app.services.inventory_service.InventoryService.get_inventory_snapshot",
            side_effect=ValueError("数据库连接失败"),
        ):
            response = client.get("/inventory/9")

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert response.json()["message"] == "服务器内部错误"

    def test_upsert_stock_as_admin(self, client, db_session, auth_header, admin, catalog_client, mock_redis):
        response = client.put("/inventory/9/stock", json={"totalQuantity": 25}, headers=auth_header(admin))

        assert response.status_code == 200
        data = response.json()
        assert data["totalQuantity"] == 25
        assert data["reservedQuantity"] == 0
        catalog_client.assert_product_exists.assert_called_once_with(9)
        mock_redis.delete.assert_called_once_with("inventory:item:9")
        assert db_session.get(InventoryItem, 9).total_quantity == 25

    def test_upsert_stock_as_supplier(self, client, auth_header, supplier, make_stock):
        make_stock(9, 10, reserved=3)

        response = client.put("/inventory/9/stock", json={"totalQuantity": 3}, headers=auth_header(supplier))

        assert response.status_code == 200
        assert response.json()["availableQuantity"] == 0

    def test_upsert_stock_below_reserved(self, client, auth_header, admin, make_stock):
        make_stock(9, 10, reserved=3)

        response = client.put("/inventory/9/stock", json={"totalQuantity": 2}, headers=auth_header(admin))

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_input"

    def test_upsert_stock_forbidden_for_user(self, client, auth_header, user, catalog_client):
        response = client.put("/inventory/9/stock", json={"totalQuantity": 5}, headers=auth_header(user))

        assert response.status_code == 403
        catalog_client.assert_product_exists.assert_not_called()

    def test_upsert_stock_requires_token(self, client):
        response = client.put("/inventory/9/stock", json={"totalQuantity": 5})
        assert response.status_code == 401

        response = client.put(
            "/inventory/9/stock",
            json={"totalQuantity": 5},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401
        assert response.json()["code"] == "unauthorized"

    def test_upsert_stock_unknown_product(self, client, auth_header, admin, catalog_client):
        catalog_client.assert_product_exists.side_effect = NotFound("商品不存在")

        response = client.put("/inventory/9/stock", json={"totalQuantity": 5}, headers=auth_header(admin))

        assert response.status_code == 404

    def test_upsert_stock_catalog_unavailable(self, client, auth_header, admin, catalog_client):
        catalog_client.assert_product_exists.side_effect = Unavailable("商品服务请求超时")

        response = client.put("/inventory/9/stock", json={"totalQuantity": 5}, headers=auth_header(admin))

        assert response.status_code == 502
        assert response.json()["code"] == "unavailable"
