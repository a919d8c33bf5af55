from sqlalchemy import (
    Column,
    BigInteger,
    Integer,
    CheckConstraint,
    TIMESTAMP,
    func,
)
from app.db.base import Base


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    # 商品由商品服务管理，这里只保存其 ID，不建外键
    product_id = Column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
        comment="商品ID",
    )

    total_quantity = Column(
        Integer,
        nullable=False,
        server_default="0",
        comment="总库存（确认出库时扣减）",
    )

    reserved_quantity = Column(
        Integer,
        nullable=False,
        server_default="0",
        comment="已预占库存",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "total_quantity >= 0",
            name="ck_total_quantity_non_negative",
        ),
        CheckConstraint(
            "reserved_quantity >= 0",
            name="ck_reserved_quantity_non_negative",
        ),
        CheckConstraint(
            "reserved_quantity <= total_quantity",
            name="ck_reserved_not_above_total",
        ),
    )

    @property
    def available_quantity(self) -> int:
        """可用库存 = 总库存 - 已预占（只派生，不落库）"""
        return max((self.total_quantity or 0) - (self.reserved_quantity or 0), 0)
