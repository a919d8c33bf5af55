"""进程内的过期预占清理

随 FastAPI lifespan 启停，每隔 interval_seconds 执行一次 release_expired。
同一进程内同一时间只跑一轮；多实例之间靠行锁（SKIP LOCKED）互不干扰。
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from app.core.redis import StockCache
from app.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(
        self,
        session_factory: sessionmaker,
        interval_seconds: float = 60,
        cache: Optional[StockCache] = None,
        batch_size: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.cache = cache
        self.batch_size = batch_size
        self._task: Optional[asyncio.Task] = None
        self._in_progress = False

    @property
    def enabled(self) -> bool:
        return self.interval_seconds is not None and self.interval_seconds > 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> Optional[asyncio.Task]:
        """在当前事件循环里启动定时任务；间隔 <= 0 时不启动"""
        if not self.enabled:
            logger.info("过期清理已禁用（RESERVATION_SWEEP_INTERVAL_SECONDS <= 0）")
            return None
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"过期清理已启动: interval={self.interval_seconds}s")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("过期清理已停止")

    async def tick(self) -> Optional[Dict[str, Any]]:
        """执行一轮清理；上一轮未结束或执行出错时返回 None"""
        if self._in_progress:
            logger.warning("上一轮过期清理仍在执行，跳过本轮")
            return None

        self._in_progress = True
        try:
            return await run_in_threadpool(self.run_once)
        except Exception as e:
            logger.error(f"过期清理执行失败: {e}", exc_info=True)
            return None
        finally:
            self._in_progress = False

    def run_once(self) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            return InventoryService(db, cache=self.cache).release_expired(limit=self.batch_size)
        finally:
            db.close()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.tick()
