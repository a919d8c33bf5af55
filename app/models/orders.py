import enum

from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    Numeric,
    TIMESTAMP,
    func,
    Enum,
    ForeignKey,
    Index,
)
from sqlalchemy.orm import relationship
from app.db.base import Base, BigIntPK


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Order(Base):
    __tablename__ = "orders"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    user_id = Column(
        BigInteger,
        nullable=False,
        index=True,
        comment="下单用户ID",
    )

    status = Column(
        Enum(
            OrderStatus,
            name="order_status_type",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        server_default=OrderStatus.PENDING.value,
        comment="订单状态，决定下一步调用哪个库存操作",
    )

    currency = Column(
        String(3),
        nullable=False,
        server_default="USD",
    )

    items_count = Column(
        Integer,
        nullable=False,
        server_default="0",
    )

    total_amount = Column(
        Numeric(12, 2),
        nullable=False,
        server_default="0",
    )

    cancelled_at = Column(
        TIMESTAMP(timezone=True),
        nullable=True,
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

    items = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.id",
        lazy="selectin",
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    order_id = Column(
        BigInteger,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    product_id = Column(
        BigInteger,
        nullable=False,
        comment="商品ID",
    )

    product_name = Column(
        String(255),
        nullable=True,
        comment="下单时的商品名快照",
    )

    product_image_url = Column(
        String(512),
        nullable=True,
    )

    quantity = Column(
        Integer,
        nullable=False,
    )

    unit_price = Column(
        Numeric(12, 2),
        nullable=False,
    )

    line_total = Column(
        Numeric(12, 2),
        nullable=False,
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

    order = relationship("Order", back_populates="items")


Index(
    "idx_orders_user_created_desc",
    Order.user_id,
    Order.created_at.desc(),
)
