"""库存相关的 Celery 任务

worker 进程启动时打开自己的 ServiceContainer，退出时关闭。
"""

import logging
from typing import Any, Dict, Optional

from celery.signals import worker_process_init, worker_process_shutdown

from celery_app import app
from app.core.config import settings
from app.core.container import ServiceContainer
from app.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)

_container: Optional[ServiceContainer] = None


@worker_process_init.connect
def open_container(**kwargs) -> None:
    get_container()


@worker_process_shutdown.connect
def close_container(**kwargs) -> None:
    global _container
    if _container is not None:
        _container.close()
        _container = None


def get_container() -> ServiceContainer:
    global _container
    if _container is None:
        _container = ServiceContainer(settings).open(create_tables=False)
    return _container


def run_release_expired(container: ServiceContainer, batch_size: Optional[int] = None) -> Dict[str, Any]:
    db = container.session()
    try:
        return InventoryService(db, cache=container.stock_cache).release_expired(limit=batch_size)
    finally:
        db.close()


@app.task(name='tasks.inventory.release_expired_reservations')
def release_expired_reservations(batch_size: Optional[int] = None):
    """释放过期的预占记录

    Args:
        batch_size: 单次最多处理的条数，为空时使用 SWEEP_BATCH_SIZE

    Returns:
        {"expired_count", "expired_quantity", "reservation_ids"}
    """
    try:
        result = run_release_expired(get_container(), batch_size or settings.SWEEP_BATCH_SIZE)
        logger.info(f"成功清理 {result['expired_count']} 条过期预占记录")
        return result
    except Exception as e:
        logger.error(f"清理过期预占任务执行失败: {str(e)}")
        raise


# 导出任务
__all__ = [
    'release_expired_reservations',
]
