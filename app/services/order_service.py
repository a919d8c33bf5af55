"""订单 Saga 协调器

订单状态机驱动库存操作：
    pending -> paid / cancelled
    paid    -> shipped / cancelled
    shipped -> delivered
取消时释放预占，发货时确认出库；远程调用失败则本地状态变更一起回滚。

创建订单是唯一需要补偿的路径：预占要引用订单 ID，所以订单行必须先提交，
之后任何一步失败都会释放预占（order_create_rollback）并把订单标记为取消。
"""

import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import Forbidden, InvalidInput, InvalidTransition, NotFound
from app.core.security import ROLE_USER, Actor
from app.db.transaction import lock_one, transaction
from app.models.orders import Order, OrderItem, OrderStatus
from app.services.saga import Saga
from app.services.validation import to_positive_int, utcnow

logger = logging.getLogger(__name__)

REASON_ORDER_CANCELLED = "order_cancelled"
REASON_ORDER_CREATE_ROLLBACK = "order_create_rollback"

ADMIN_ALLOWED_STATUSES = {
    OrderStatus.PAID,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
}

STATUS_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return current == target or target in STATUS_TRANSITIONS.get(current, set())


def normalize_admin_status(value: Any) -> OrderStatus:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput("Status is required")
    try:
        status = OrderStatus(value.strip().lower())
    except ValueError:
        status = None
    if status not in ADMIN_ALLOWED_STATUSES:
        raise InvalidInput("Status must be one of: paid, shipped, delivered, cancelled")
    return status


def normalize_currency(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        return "USD"
    return value.strip().upper()[:3]


class OrderService:
    """订单服务

    inventory 是库存服务客户端（reserve / release_order / confirm_order），
    cart 是购物车服务客户端（fetch_my_cart）。
    """

    def __init__(
        self,
        db: Session,
        inventory,
        cart=None,
        reservation_ttl_seconds: int = 900,
    ):
        self.db = db
        self.inventory = inventory
        self.cart = cart
        self.reservation_ttl_seconds = reservation_ttl_seconds

    # ==================== 查询 ====================

    def get_order(self, order_id: int) -> Optional[Order]:
        order_id = to_positive_int(order_id, "orderId")
        return self.db.get(Order, order_id, populate_existing=True)

    def get_order_for_actor(self, order_id: int, actor: Actor) -> Order:
        order = self.get_order(order_id)
        if order is None:
            raise NotFound("Order not found")
        if not actor.is_admin and actor.id != order.user_id:
            raise Forbidden("Forbidden")
        return order

    def list_orders_for_user(self, user_id: int, actor: Optional[Actor] = None) -> List[Order]:
        user_id = to_positive_int(user_id, "userId")
        if actor is not None and not actor.is_admin and actor.id != user_id:
            raise Forbidden("Forbidden")
        return list(
            self.db.execute(
                select(Order)
                .where(Order.user_id == user_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
            ).scalars().all()
        )

    # ==================== 创建订单 ====================

    def create_order_from_cart_item(
        self,
        actor: Actor,
        authorization: Optional[str],
        product_id: int,
        quantity: Optional[int] = None,
    ) -> Order:
        """从购物车中的一个商品创建订单并预占库存"""
        if actor.role != ROLE_USER:
            raise Forbidden("Only users can create orders")
        product_id = to_positive_int(product_id, "productId")

        cart = self.cart.fetch_my_cart(authorization)
        line = self._select_cart_line(cart, product_id, quantity)

        ctx: Dict[str, Any] = {
            "user_id": actor.id,
            "product_id": product_id,
            "line": line,
            "expires_at": self._reservation_expiry(),
        }
        saga = (
            Saga("create_order")
            .add_step("create_pending_order", self._create_pending_order, self._cancel_half_created_order)
            .add_step(
                "reserve_inventory",
                self._reserve_inventory,
                self._release_inventory,
                compensate_on_failure=True,
            )
            .add_step("record_order_item", self._record_order_item)
        )
        saga.execute(ctx)

        logger.info(
            f"创建订单成功: order_id={ctx['order_id']}, user_id={actor.id}, "
            f"product_id={product_id}, quantity={line['quantity']}"
        )
        return self.get_order(ctx["order_id"])

    def _select_cart_line(self, cart: Dict[str, Any], product_id: int, quantity: Optional[int]) -> Dict[str, Any]:
        items = cart.get("items")
        if not isinstance(items, list) or not items:
            raise InvalidInput("Cart is empty")

        cart_item = None
        for item in items:
            if isinstance(item, dict) and str(item.get("productId")) == str(product_id):
                cart_item = item
                break
        if cart_item is None:
            raise InvalidInput("Product must exist in your cart before creating an order")

        try:
            available = to_positive_int(cart_item.get("quantity"), "quantity")
        except InvalidInput:
            raise InvalidInput("Invalid cart quantity for this product")

        selected = available if quantity is None else to_positive_int(quantity, "quantity")
        if selected > available:
            raise InvalidInput(f"Only {available} item(s) available in cart for this product")

        try:
            unit_price = Decimal(str(cart_item.get("unitPrice")))
        except InvalidOperation:
            raise InvalidInput("Invalid product price in cart")
        if not unit_price.is_finite() or unit_price <= 0:
            raise InvalidInput("Invalid product price in cart")

        return {
            "quantity": selected,
            "unit_price": unit_price,
            "line_total": (unit_price * selected).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
            "product_name": cart_item.get("productName"),
            "product_image_url": cart_item.get("productImageUrl"),
            "currency": normalize_currency(cart.get("currency")),
        }

    def _reservation_expiry(self):
        if self.reservation_ttl_seconds and self.reservation_ttl_seconds > 0:
            return utcnow() + timedelta(seconds=self.reservation_ttl_seconds)
        return None

    # Saga 步骤 1：订单行先提交，预占需要引用它的 ID
    def _create_pending_order(self, ctx: Dict[str, Any]) -> None:
        line = ctx["line"]
        with transaction(self.db):
            order = Order(
                user_id=ctx["user_id"],
                status=OrderStatus.PENDING,
                currency=line["currency"],
                items_count=1,
                total_amount=line["line_total"],
            )
            self.db.add(order)
            self.db.flush()
            ctx["order_id"] = order.id

    def _cancel_half_created_order(self, ctx: Dict[str, Any]) -> None:
        with transaction(self.db):
            order = self._lock_order(ctx["order_id"])
            if order is not None and order.status == OrderStatus.PENDING:
                order.status = OrderStatus.CANCELLED
                order.cancelled_at = utcnow()

    # Saga 步骤 2：远程预占
    def _reserve_inventory(self, ctx: Dict[str, Any]) -> None:
        ctx["reservation"] = self.inventory.reserve(
            ctx["order_id"],
            ctx["product_id"],
            ctx["line"]["quantity"],
            ctx["expires_at"],
        )

    def _release_inventory(self, ctx: Dict[str, Any]) -> None:
        self.inventory.release_order(ctx["order_id"], REASON_ORDER_CREATE_ROLLBACK)

    # Saga 步骤 3：写订单明细
    def _record_order_item(self, ctx: Dict[str, Any]) -> None:
        line = ctx["line"]
        with transaction(self.db):
            self.db.add(
                OrderItem(
                    order_id=ctx["order_id"],
                    product_id=ctx["product_id"],
                    product_name=line["product_name"],
                    product_image_url=line["product_image_url"],
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    line_total=line["line_total"],
                )
            )

    # ==================== 状态变更 ====================

    def cancel_order(self, order_id: int, actor: Actor) -> Order:
        """用户取消订单：只允许 pending；释放失败则整个取消回滚"""
        order_id = to_positive_int(order_id, "orderId")

        with transaction(self.db):
            order = self._lock_order(order_id)
            if order is None:
                raise NotFound("Order not found")
            if not actor.is_admin and actor.id != order.user_id:
                raise Forbidden("Forbidden")

            if order.status != OrderStatus.CANCELLED:
                if order.status != OrderStatus.PENDING:
                    raise InvalidTransition("Only pending orders can be cancelled")
                self._mark_cancelled(order)

        logger.info(f"取消订单成功: order_id={order_id}, actor_id={actor.id}")
        return self.get_order(order_id)

    def update_order_status(self, order_id: int, actor: Actor, status: Any) -> Order:
        """管理员修改订单状态；取消释放预占，发货确认出库"""
        order_id = to_positive_int(order_id, "orderId")
        if not actor.is_admin:
            raise Forbidden("Only admin can update order status")
        target = normalize_admin_status(status)

        with transaction(self.db):
            order = self._lock_order(order_id)
            if order is None:
                raise NotFound("Order not found")

            current = OrderStatus(order.status)
            if current == target:
                return self.get_order(order_id)
            if not can_transition(current, target):
                raise InvalidTransition(f"Cannot change status from {current.value} to {target.value}")

            if target == OrderStatus.CANCELLED:
                self._mark_cancelled(order)
            else:
                order.status = target
                order.cancelled_at = None
                self.db.flush()
                if target == OrderStatus.SHIPPED:
                    self.inventory.confirm_order(order_id)

        logger.info(f"订单状态变更: order_id={order_id}, {current.value} -> {target.value}")
        return self.get_order(order_id)

    def _mark_cancelled(self, order: Order) -> None:
        """在当前事务内改状态并远程释放；释放失败由调用方事务回滚"""
        order.status = OrderStatus.CANCELLED
        order.cancelled_at = utcnow()
        self.db.flush()
        self.inventory.release_order(order.id, REASON_ORDER_CANCELLED)

    def _lock_order(self, order_id: int) -> Optional[Order]:
        return lock_one(self.db, select(Order).where(Order.id == order_id))
