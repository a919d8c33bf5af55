"""订单路由测试"""
from unittest.mock import patch

from app.core.exceptions import Unavailable
from app.models.inventory_reservations import InventoryReservation, ReservationStatus
from app.models.orders import OrderStatus
from app.services.order_service import OrderService


class TestOrderRouter:
    """订单接口测试类"""

    def test_create_order(self, client, auth_header, user, make_stock, cart_client):
        make_stock(9, 10)
        headers = auth_header(user)

        response = client.post("/orders/me", json={"productId": 9, "quantity": 2}, headers=headers)

        assert response.status_code == 201
        order = response.json()["order"]
        assert order["status"] == "pending"
        assert order["userId"] == user.id
        assert order["totalAmount"] == 39.98
        assert order["itemsCount"] == 1
        assert order["items"][0]["productId"] == 9
        assert order["items"][0]["lineTotal"] == 39.98
        # 原样转发用户令牌给购物车服务
        cart_client.fetch_my_cart.assert_called_once_with(headers["Authorization"])

        stock = client.get("/inventory/9").json()
        assert stock["reservedQuantity"] == 2

    def test_create_order_forbidden_for_admin(self, client, auth_header, admin):
        response = client.post("/orders/me", json={"productId": 9}, headers=auth_header(admin))
        assert response.status_code == 403

    def test_create_order_insufficient_stock(self, client, db_session, auth_header, user, make_stock):
        make_stock(9, 1)

        response = client.post("/orders/me", json={"productId": 9, "quantity": 2}, headers=auth_header(user))

        assert response.status_code == 409
        assert response.json()["code"] == "insufficient_stock"
        orders = client.get("/orders/me", headers=auth_header(user)).json()["orders"]
        assert [o["status"] for o in orders] == ["cancelled"]

    def test_create_order_item_failure_compensated(self, client, db_session, auth_header, user, make_stock, remote_inventory):
        make_stock(9, 10)

        with patch.object(OrderService, "_record_order_item", side_effect=RuntimeError("insert failed")):
            response = client.post("/orders/me", json={"productId": 9, "quantity": 2}, headers=auth_header(user))

        assert response.status_code == 500
        order_id = remote_inventory.reserve.call_args[0][0]
        remote_inventory.release_order.assert_called_once_with(order_id, "order_create_rollback")
        active = db_session.query(InventoryReservation).filter_by(
            order_id=order_id, status=ReservationStatus.ACTIVE
        ).count()
        assert active == 0

    def test_list_and_get_orders(self, client, auth_header, user, other_user, admin, make_order):
        mine = make_order(user_id=user.id)
        make_order(user_id=other_user.id)

        data = client.get("/orders/me", headers=auth_header(user)).json()
        assert data["count"] == 1
        assert data["orders"][0]["id"] == mine.id

        assert client.get(f"/orders/user/{user.id}", headers=auth_header(admin)).json()["count"] == 1
        assert client.get(f"/orders/user/{user.id}", headers=auth_header(other_user)).status_code == 403

        assert client.get(f"/orders/{mine.id}", headers=auth_header(user)).json()["order"]["id"] == mine.id
        assert client.get(f"/orders/{mine.id}", headers=auth_header(other_user)).status_code == 403
        assert client.get("/orders/404", headers=auth_header(user)).status_code == 404

    def test_orders_require_token(self, client):
        assert client.get("/orders/me").status_code == 401

    def test_cancel_order(self, client, auth_header, user, make_stock):
        make_stock(9, 10)
        order_id = client.post("/orders/me", json={"productId": 9}, headers=auth_header(user)).json()["order"]["id"]

        response = client.patch(f"/orders/{order_id}/cancel", headers=auth_header(user))

        assert response.status_code == 200
        order = response.json()["order"]
        assert order["status"] == "cancelled"
        assert order["cancelledAt"] is not None
        assert client.get("/inventory/9").json()["reservedQuantity"] == 0

    def test_cancel_non_pending_order(self, client, auth_header, user, make_order):
        order = make_order(user_id=user.id, status=OrderStatus.SHIPPED)

        response = client.patch(f"/orders/{order.id}/cancel", headers=auth_header(user))

        assert response.status_code == 409
        assert response.json()["code"] == "invalid_transition"

    def test_cancel_release_unavailable(self, client, auth_header, user, make_order, remote_inventory):
        order = make_order(user_id=user.id)
        remote_inventory.release_order.side_effect = Unavailable("库存服务不可用")

        response = client.patch(f"/orders/{order.id}/cancel", headers=auth_header(user))

        assert response.status_code == 502
        assert client.get(f"/orders/{order.id}", headers=auth_header(user)).json()["order"]["status"] == "pending"

    def test_admin_status_flow(self, client, auth_header, user, admin, make_stock):
        make_stock(9, 10)
        order_id = client.post(
            "/orders/me", json={"productId": 9, "quantity": 2}, headers=auth_header(user)
        ).json()["order"]["id"]

        for target in ("paid", "shipped", "delivered"):
            response = client.patch(f"/orders/{order_id}/status", json={"status": target}, headers=auth_header(admin))
            assert response.status_code == 200
            assert response.json()["order"]["status"] == target

        stock = client.get("/inventory/9").json()
        assert (stock["totalQuantity"], stock["reservedQuantity"]) == (8, 0)

    def test_admin_status_rejections(self, client, auth_header, user, admin, make_order):
        order = make_order(user_id=user.id)

        bad_value = client.patch(f"/orders/{order.id}/status", json={"status": "lost"}, headers=auth_header(admin))
        skip = client.patch(f"/orders/{order.id}/status", json={"status": "shipped"}, headers=auth_header(admin))
        not_admin = client.patch(f"/orders/{order.id}/status", json={"status": "paid"}, headers=auth_header(user))

        assert bad_value.status_code == 400
        assert skip.status_code == 409
        assert not_admin.status_code == 403

    def test_internal_order_exists(self, client, make_order):
        order = make_order()

        response = client.get(f"/internal/orders/{order.id}/exists")

        assert response.status_code == 200
        data = response.json()
        assert data["exists"] is True
        assert data["order"]["id"] == order.id
        assert client.get("/internal/orders/404/exists").status_code == 404
