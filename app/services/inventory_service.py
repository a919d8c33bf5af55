"""库存预占引擎

库存台账（inventory_items）和预占记录（inventory_reservations）上的事务操作：
预占、确认出库、释放、过期清理。每个公开操作都是一个本地事务，
所有读-改-写都在行级排他锁下完成，任何一步失败整体回滚。
加锁顺序见 app.db.transaction。
"""

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import Conflict, InsufficientStock, InvalidInput, NotFound
from app.core.redis import StockCache
from app.db.transaction import lock_all, lock_one, transaction
from app.models.inventory_items import InventoryItem
from app.models.inventory_logs import ChangeType, InventoryLog
from app.models.inventory_reservations import InventoryReservation, ReservationStatus
from app.services.validation import (
    normalize_expires_at,
    normalize_reason,
    to_non_negative_int,
    to_positive_int,
    utcnow,
)

logger = logging.getLogger(__name__)

REASON_MANUAL_RELEASE = "manual_release"
REASON_ORDER_CANCELLED = "order_cancelled"
REASON_ORDER_CONFIRMED = "order_confirmed"
REASON_ORDER_TIMEOUT = "order_timeout"


def inventory_snapshot(item: InventoryItem) -> Dict[str, Any]:
    """库存行的可缓存快照（可用库存在这里派生）"""
    return {
        "product_id": int(item.product_id),
        "total_quantity": int(item.total_quantity),
        "reserved_quantity": int(item.reserved_quantity),
        "available_quantity": item.available_quantity,
        "created_at": item.created_at.isoformat() if item.created_at else None,
        "updated_at": item.updated_at.isoformat() if item.updated_at else None,
    }


class InventoryService:
    """库存核心服务类

    catalog / orders 是商品服务和订单服务的客户端，用于在开事务前
    确认商品、订单存在；为 None 时跳过该检查（例如后台清理）。
    """

    def __init__(
        self,
        db: Session,
        catalog=None,
        orders=None,
        cache: Optional[StockCache] = None,
    ):
        self.db = db
        self.catalog = catalog
        self.orders = orders
        self.cache = cache or StockCache(None)

    # ==================== 查询 ====================

    def get_inventory(self, product_id: int) -> Optional[InventoryItem]:
        product_id = to_positive_int(product_id, "productId")
        return self.db.execute(
            select(InventoryItem).where(InventoryItem.product_id == product_id)
        ).scalar_one_or_none()

    def get_inventory_snapshot(self, product_id: int) -> Dict[str, Any]:
        """查询商品库存（带缓存）"""
        product_id = to_positive_int(product_id, "productId")

        cached = self.cache.get(product_id)
        if cached is not None:
            return cached

        item = self.get_inventory(product_id)
        if item is None:
            raise NotFound("Inventory item not found")

        snapshot = inventory_snapshot(item)
        self.cache.set(product_id, snapshot)
        return snapshot

    def get_reservation(self, reservation_id: int) -> Optional[InventoryReservation]:
        reservation_id = to_positive_int(reservation_id, "reservationId")
        return self.db.get(InventoryReservation, reservation_id)

    def list_reservations_for_order(self, order_id: int) -> List[InventoryReservation]:
        order_id = to_positive_int(order_id, "orderId")
        return list(
            self.db.execute(
                select(InventoryReservation)
                .where(InventoryReservation.order_id == order_id)
                .order_by(InventoryReservation.id)
            ).scalars().all()
        )

    def count_expired(self, now: Optional[datetime] = None) -> int:
        """统计待清理的过期预占数量（试运行用，不加锁）"""
        now = normalize_expires_at(now) or utcnow()
        return self.db.execute(
            select(func.count(InventoryReservation.id)).where(
                InventoryReservation.status == ReservationStatus.ACTIVE,
                InventoryReservation.expires_at.is_not(None),
                InventoryReservation.expires_at <= now,
            )
        ).scalar_one()

    # ==================== 库存维护 ====================

    def upsert_stock(self, product_id: int, total_quantity: int) -> InventoryItem:
        """设置商品总库存；不存在则创建，不能低于已预占数量"""
        product_id = to_positive_int(product_id, "productId")
        total_quantity = to_non_negative_int(total_quantity, "totalQuantity")
        if self.catalog is not None:
            self.catalog.assert_product_exists(product_id)

        try:
            with transaction(self.db):
                item = self._lock_item(product_id)
                if item is None:
                    item = InventoryItem(
                        product_id=product_id,
                        total_quantity=total_quantity,
                        reserved_quantity=0,
                    )
                    self.db.add(item)
                    self._log(ChangeType.ADJUST, product_id, None, total_quantity, 0, total_quantity, "admin")
                else:
                    if total_quantity < item.reserved_quantity:
                        raise InvalidInput(
                            f"totalQuantity cannot be less than reservedQuantity ({item.reserved_quantity})"
                        )
                    before = item.available_quantity
                    item.total_quantity = total_quantity
                    self._log(
                        ChangeType.ADJUST,
                        product_id,
                        None,
                        item.available_quantity - before,
                        before,
                        item.available_quantity,
                        "admin",
                    )
        except IntegrityError:
            # 两个请求同时为新商品建库存行
            raise Conflict("Inventory item was created concurrently, retry the request")

        self.db.refresh(item)
        self.cache.invalidate(product_id)
        logger.info(f"更新库存成功: product_id={product_id}, total_quantity={total_quantity}")
        return item

    # ==================== 预占 ====================

    def reserve(
        self,
        order_id: int,
        product_id: int,
        quantity: int,
        expires_at: Any = None,
    ) -> Dict[str, Any]:
        """预占库存

        同一订单同一商品已有 ACTIVE 预占时：
        - 数量相同：视为重试，原样返回已有预占，不重复扣减
        - 数量不同：无法判断调用方意图，返回 Conflict
        """
        order_id = to_positive_int(order_id, "orderId")
        product_id = to_positive_int(product_id, "productId")
        quantity = to_positive_int(quantity, "quantity")
        expires_at = normalize_expires_at(expires_at)
        if self.catalog is not None:
            self.catalog.assert_product_exists(product_id)
        if self.orders is not None:
            self.orders.assert_order_exists(order_id)

        created = False
        with transaction(self.db):
            item = self._lock_item(product_id)
            if item is None:
                raise NotFound("Inventory item not found")

            reservation = lock_one(
                self.db,
                select(InventoryReservation).where(
                    InventoryReservation.order_id == order_id,
                    InventoryReservation.product_id == product_id,
                    InventoryReservation.status == ReservationStatus.ACTIVE,
                ),
            )

            if reservation is not None:
                if reservation.quantity != quantity:
                    raise Conflict("Active reservation already exists with different quantity")
            else:
                available = item.available_quantity
                if available < quantity:
                    raise InsufficientStock(available)

                reservation = InventoryReservation(
                    order_id=order_id,
                    product_id=product_id,
                    quantity=quantity,
                    status=ReservationStatus.ACTIVE,
                    expires_at=expires_at,
                )
                self.db.add(reservation)
                item.reserved_quantity += quantity
                self._log(ChangeType.RESERVE, product_id, order_id, -quantity, available, item.available_quantity)
                created = True

        self.db.refresh(reservation)
        self.db.refresh(item)
        if created:
            self.cache.invalidate(product_id)
            logger.info(f"预占库存成功: order_id={order_id}, product_id={product_id}, quantity={quantity}")
        else:
            logger.info(
                f"重复预占请求，返回已有预占: order_id={order_id}, product_id={product_id}, "
                f"reservation_id={reservation.id}"
            )

        return {"reservation": reservation, "inventory": item}

    # ==================== 确认出库 ====================

    def confirm_order(self, order_id: int) -> Dict[str, Any]:
        """确认订单下所有 ACTIVE 预占：总库存和预占同时扣减（永久消耗）

        没有 ACTIVE 预占时什么都不做，重复调用安全。
        任一预占的库存行缺失时报 NotFound，整单不确认。
        """
        order_id = to_positive_int(order_id, "orderId")
        if self.orders is not None:
            self.orders.assert_order_exists(order_id)

        with transaction(self.db):
            items = self._lock_items(self._active_product_ids(order_id))
            reservations = self._lock_active_reservations(order_id)

            for reservation in reservations:
                item = items.get(reservation.product_id)
                if item is None:
                    raise NotFound(f"Inventory item not found for productId {reservation.product_id}")
                if item.total_quantity < reservation.quantity or item.reserved_quantity < reservation.quantity:
                    raise Conflict(f"Inventory state conflict for productId {reservation.product_id}")

                before = item.available_quantity
                item.total_quantity -= reservation.quantity
                item.reserved_quantity -= reservation.quantity
                reservation.status = ReservationStatus.CONFIRMED
                reservation.release_reason = REASON_ORDER_CONFIRMED
                self._log(ChangeType.CONFIRM, item.product_id, order_id, 0, before, item.available_quantity)

        confirmed_quantity = sum(r.quantity for r in reservations)
        if reservations:
            self.cache.invalidate(*items.keys())
            logger.info(
                f"确认库存成功: order_id={order_id}, count={len(reservations)}, quantity={confirmed_quantity}"
            )

        return {
            "order_id": order_id,
            "confirmed_count": len(reservations),
            "confirmed_quantity": confirmed_quantity,
            "reservations": self.list_reservations_for_order(order_id),
        }

    # ==================== 释放 ====================

    def release_order(self, order_id: int, reason: Optional[str] = None) -> Dict[str, Any]:
        """释放订单下所有 ACTIVE 预占，非 ACTIVE 的记录原样保留（幂等）"""
        order_id = to_positive_int(order_id, "orderId")
        reason = normalize_reason(reason, REASON_ORDER_CANCELLED)
        if self.orders is not None:
            self.orders.assert_order_exists(order_id)

        with transaction(self.db):
            items = self._lock_items(self._active_product_ids(order_id))
            reservations = self._lock_active_reservations(order_id)
            self._return_reserved(
                items,
                reservations,
                status=ReservationStatus.RELEASED,
                reason=reason,
                change_type=ChangeType.RELEASE,
                source="order_service",
            )

        released_quantity = sum(r.quantity for r in reservations)
        if reservations:
            self.cache.invalidate(*items.keys())
            logger.info(
                f"释放库存成功: order_id={order_id}, count={len(reservations)}, "
                f"quantity={released_quantity}, reason={reason}"
            )

        return {
            "order_id": order_id,
            "released_count": len(reservations),
            "released_quantity": released_quantity,
            "reservations": self.list_reservations_for_order(order_id),
        }

    def release_reservation(self, reservation_id: int, reason: Optional[str] = None) -> Dict[str, Any]:
        """按预占 ID 释放；已经不是 ACTIVE 的直接返回当前状态"""
        reservation_id = to_positive_int(reservation_id, "reservationId")
        reason = normalize_reason(reason, REASON_MANUAL_RELEASE)

        with transaction(self.db):
            # 先不加锁读出商品，保证先锁库存行再锁预占行
            current = self.get_reservation(reservation_id)
            if current is None:
                raise NotFound("Reservation not found")

            item = self._lock_item(current.product_id)
            reservation = lock_one(
                self.db,
                select(InventoryReservation).where(InventoryReservation.id == reservation_id),
            )
            released = reservation.status == ReservationStatus.ACTIVE
            if released:
                self._return_reserved(
                    {item.product_id: item} if item is not None else {},
                    [reservation],
                    status=ReservationStatus.RELEASED,
                    reason=reason,
                    change_type=ChangeType.RELEASE,
                    source="manual",
                )

        self.db.refresh(reservation)
        if item is not None:
            self.db.refresh(item)
        if released:
            self.cache.invalidate(reservation.product_id)
            logger.info(
                f"释放预占成功: reservation_id={reservation_id}, order_id={reservation.order_id}, "
                f"quantity={reservation.quantity}, reason={reason}"
            )

        return {"reservation": reservation, "inventory": item}

    # ==================== 过期清理 ====================

    def release_expired(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> Dict[str, Any]:
        """把已过期仍为 ACTIVE 的预占标记为 EXPIRED 并归还预占库存

        按 id 从旧到新处理；limit 为空时处理全部。
        行锁粒度是单行，可以和自身以及其它库存操作并发执行。
        """
        now = normalize_expires_at(now) or utcnow()

        candidates = select(InventoryReservation.id, InventoryReservation.product_id).where(
            InventoryReservation.status == ReservationStatus.ACTIVE,
            InventoryReservation.expires_at.is_not(None),
            InventoryReservation.expires_at <= now,
        ).order_by(InventoryReservation.id)
        if limit:
            candidates = candidates.limit(to_positive_int(limit, "limit"))

        with transaction(self.db):
            rows = self.db.execute(candidates).all()
            if not rows:
                return {"expired_count": 0, "expired_quantity": 0, "reservation_ids": []}

            items = self._lock_items({row.product_id for row in rows})
            # 被其它事务锁住的行留给下一轮；锁到后再校验一次状态
            reservations = lock_all(
                self.db,
                select(InventoryReservation)
                .where(
                    InventoryReservation.id.in_([row.id for row in rows]),
                    InventoryReservation.status == ReservationStatus.ACTIVE,
                )
                .order_by(InventoryReservation.id),
                skip_locked=True,
            )
            self._return_reserved(
                items,
                reservations,
                status=ReservationStatus.EXPIRED,
                reason=REASON_ORDER_TIMEOUT,
                change_type=ChangeType.EXPIRE,
                source="sweeper",
            )

        reservation_ids = [r.id for r in reservations]
        expired_quantity = sum(r.quantity for r in reservations)
        if reservations:
            self.cache.invalidate(*{r.product_id for r in reservations})
            logger.info(f"清理过期预占完成: count={len(reservation_ids)}, quantity={expired_quantity}")

        return {
            "expired_count": len(reservation_ids),
            "expired_quantity": expired_quantity,
            "reservation_ids": reservation_ids,
        }

    # ==================== 内部方法 ====================

    def _lock_item(self, product_id: int) -> Optional[InventoryItem]:
        return lock_one(self.db, select(InventoryItem).where(InventoryItem.product_id == product_id))

    def _lock_items(self, product_ids: Iterable[int]) -> "OrderedDict[int, InventoryItem]":
        """按 product_id 升序锁定库存行"""
        product_ids = sorted(set(product_ids))
        if not product_ids:
            return OrderedDict()
        rows = lock_all(
            self.db,
            select(InventoryItem)
            .where(InventoryItem.product_id.in_(product_ids))
            .order_by(InventoryItem.product_id),
        )
        return OrderedDict((item.product_id, item) for item in rows)

    def _active_product_ids(self, order_id: int) -> List[int]:
        return list(
            self.db.execute(
                select(InventoryReservation.product_id).where(
                    InventoryReservation.order_id == order_id,
                    InventoryReservation.status == ReservationStatus.ACTIVE,
                )
            ).scalars().all()
        )

    def _lock_active_reservations(self, order_id: int) -> List[InventoryReservation]:
        return lock_all(
            self.db,
            select(InventoryReservation)
            .where(
                InventoryReservation.order_id == order_id,
                InventoryReservation.status == ReservationStatus.ACTIVE,
            )
            .order_by(InventoryReservation.id),
        )

    def _return_reserved(
        self,
        items: Dict[int, InventoryItem],
        reservations: List[InventoryReservation],
        *,
        status: ReservationStatus,
        reason: str,
        change_type: ChangeType,
        source: str,
    ) -> None:
        """归还预占库存并把预占行改成终态；同一商品的数量先合并再写一次"""
        quantity_by_product: Dict[int, int] = OrderedDict()
        for reservation in reservations:
            quantity_by_product[reservation.product_id] = (
                quantity_by_product.get(reservation.product_id, 0) + reservation.quantity
            )

        for product_id, quantity in quantity_by_product.items():
            item = items.get(product_id)
            if item is None:
                # 库存行已不存在，只改预占状态
                continue
            before = item.available_quantity
            # 人工修数据可能让预占量偏小，下限为 0
            item.reserved_quantity = max(item.reserved_quantity - quantity, 0)
            order_ids = {r.order_id for r in reservations if r.product_id == product_id}
            self._log(
                change_type,
                product_id,
                order_ids.pop() if len(order_ids) == 1 else None,
                item.available_quantity - before,
                before,
                item.available_quantity,
                source,
            )

        for reservation in reservations:
            reservation.status = status
            reservation.release_reason = reason

    def _log(
        self,
        change_type: ChangeType,
        product_id: int,
        order_id: Optional[int],
        quantity: int,
        before_available: int,
        after_available: int,
        source: str = "order_service",
    ) -> None:
        self.db.add(
            InventoryLog(
                product_id=product_id,
                order_id=order_id,
                change_type=change_type,
                quantity=quantity,
                before_available=before_available,
                after_available=after_available,
                source=source,
            )
        )
