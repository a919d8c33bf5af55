"""Redis 客户端（库存读缓存）"""

import json
import logging
from typing import Any, Dict, Optional

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def create_redis(url: str) -> Redis:
    return Redis.from_url(url, decode_responses=True)


def ping_redis(client: Optional[Redis]) -> Optional[Redis]:
    """连不上时返回 None，调用方降级为不走缓存"""
    if client is None:
        return None
    try:
        client.ping()
        return client
    except (RedisError, OSError) as e:
        logger.warning(f"⚠️  Redis connection failed: {e}")
        return None


class StockCache:
    """公开库存查询的读穿透缓存

    只缓存读接口的结果；任何库存变更提交后都会删除对应 key。
    缓存异常只记录日志，不影响主流程。
    """

    KEY_PREFIX = "inventory:item:"

    def __init__(self, redis: Optional[Redis], ttl_seconds: int = 300):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    @property
    def enabled(self) -> bool:
        return self.redis is not None and self.ttl_seconds > 0

    def key(self, product_id: int) -> str:
        return f"{self.KEY_PREFIX}{product_id}"

    def get(self, product_id: int) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            return None
        try:
            cached = self.redis.get(self.key(product_id))
        except RedisError as e:
            logger.warning(f"读取库存缓存失败: product_id={product_id}, error={e}")
            return None
        if cached is None:
            return None
        logger.debug(f"Cache hit for product {product_id}")
        return json.loads(cached)

    def set(self, product_id: int, snapshot: Dict[str, Any]) -> None:
        if not self.enabled:
            return
        try:
            self.redis.setex(self.key(product_id), self.ttl_seconds, json.dumps(snapshot, default=str))
        except RedisError as e:
            logger.warning(f"写入库存缓存失败: product_id={product_id}, error={e}")

    def invalidate(self, *product_ids: int) -> None:
        if self.redis is None or not product_ids:
            return
        try:
            self.redis.delete(*[self.key(pid) for pid in product_ids])
            logger.debug(f"Cache invalidated for products {list(product_ids)}")
        except RedisError as e:
            logger.warning(f"删除库存缓存失败: product_ids={list(product_ids)}, error={e}")
