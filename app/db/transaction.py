"""事务与行锁原语

所有库存变更都在一个本地事务内完成，行锁（SELECT ... FOR UPDATE）
持有到事务结束。加锁顺序固定，避免并发请求之间互相死锁：

    1. inventory_items，按 product_id 升序
    2. inventory_reservations，按 id 升序
    3. orders（仅订单服务使用，且从不与库存行在同一事务中加锁）

调用方如果需要先知道涉及哪些商品，应先做一次不加锁的读取，
按上面的顺序加锁后再重新校验状态。
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session

T = TypeVar("T")


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """事务作用域：正常退出提交，异常回滚并继续抛出"""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def lock_one(db: Session, stmt: Select) -> Optional[T]:
    """加排他锁读取单行，不存在返回 None"""
    return db.execute(stmt.with_for_update()).scalars().first()


def lock_all(db: Session, stmt: Select, skip_locked: bool = False) -> List[T]:
    """加排他锁读取多行（调用方负责 ORDER BY）"""
    return list(db.execute(stmt.with_for_update(skip_locked=skip_locked)).scalars().all())
