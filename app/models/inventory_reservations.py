import enum

from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    TIMESTAMP,
    func,
    text,
    Enum,
    Index,
    CheckConstraint,
)
from app.db.base import Base, BigIntPK



# 1️ 预占状态枚举（数据库 ENUM）
# 只有 ACTIVE 可以变更，其余均为终态

class ReservationStatus(str, enum.Enum):
    ACTIVE = "active"         # 预占中
    RELEASED = "released"     # 已释放（取消 / 回滚 / 人工）
    CONFIRMED = "confirmed"   # 已确认出库
    EXPIRED = "expired"       # 超时被清理



# 2️ 预占表

class InventoryReservation(Base):
    __tablename__ = "inventory_reservations"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    order_id = Column(
        BigInteger,
        nullable=False,
        index=True,
        comment="订单ID",
    )

    product_id = Column(
        BigInteger,
        nullable=False,
        index=True,
        comment="商品ID",
    )

    quantity = Column(
        Integer,
        nullable=False,
        comment="预占数量",
    )

    status = Column(
        Enum(
            ReservationStatus,
            name="reservation_status_type",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        server_default=ReservationStatus.ACTIVE.value,
        comment="预占状态",
    )

    expires_at = Column(
        TIMESTAMP(timezone=True),
        nullable=True,
        comment="预占过期时间，为空表示不过期",
    )

    release_reason = Column(
        String(80),
        nullable=True,
        comment="释放 / 过期 / 确认原因",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_reservation_quantity_positive"),
    )



# 3️ 同一订单同一商品只能有一条 ACTIVE 预占（历史记录不受限）

Index(
    "uq_active_reservation_order_product",
    InventoryReservation.order_id,
    InventoryReservation.product_id,
    unique=True,
    postgresql_where=text("status = 'active'"),
    sqlite_where=text("status = 'active'"),
)

# 过期清理扫描
Index(
    "idx_reservation_status_expires",
    InventoryReservation.status,
    InventoryReservation.expires_at,
)
