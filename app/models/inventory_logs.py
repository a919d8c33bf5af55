import enum

from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    TIMESTAMP,
    func,
    Enum,
    Index,
)
from app.db.base import Base, BigIntPK

# 1定义库存变更类型（数据库 ENUM）
class ChangeType(str, enum.Enum):
    RESERVE = "RESERVE"   # 预占库存
    CONFIRM = "CONFIRM"   # 确认出库
    RELEASE = "RELEASE"   # 释放预占
    EXPIRE = "EXPIRE"     # 超时释放
    ADJUST = "ADJUST"     # 人工调整总库存
# 2️库存流水表（与库存变更在同一事务内写入）
class InventoryLog(Base):
    __tablename__ = "inventory_logs"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    product_id = Column(
        BigInteger,
        nullable=False,
        index=True,
        comment="商品ID",
    )

    order_id = Column(
        BigInteger,
        nullable=True,
        index=True,
        comment="订单ID（库存调整时为空）",
    )

    change_type = Column(
        Enum(
            ChangeType,
            name="inventory_change_type",
        ),
        nullable=False,
        comment="库存变更类型",
    )

    quantity = Column(
        Integer,
        nullable=False,
        comment="可用库存变化量（带符号）",
    )

    before_available = Column(
        Integer,
        nullable=False,
        comment="变更前可用库存",
    )

    after_available = Column(
        Integer,
        nullable=False,
        comment="变更后可用库存",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    source = Column(
        String(50),
        nullable=True,
        comment="来源：order_service / sweeper / admin",
    )

# 3️组合索引（高频查询优化）


Index(
    "idx_inventory_logs_product_created_desc",
    InventoryLog.product_id,
    InventoryLog.created_at.desc(),
)
