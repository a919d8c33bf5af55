"""服务资源容器

数据库引擎、会话工厂、Redis 和下游客户端都由这里创建并持有，
生命周期由 FastAPI lifespan（或 Celery worker / 命令行脚本）负责 open / close。
"""

import logging
from typing import Optional

from redis import Redis
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.clients import CartClient, CatalogClient, InventoryClient, OrderClient
from app.core.config import Settings
from app.core.redis import StockCache, create_redis, ping_redis
from app.db import create_db_engine, create_session_factory, init_db

logger = logging.getLogger(__name__)


class ServiceContainer:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine: Optional[Engine] = None
        self.session_factory: Optional[sessionmaker] = None
        self.redis: Optional[Redis] = None
        self.stock_cache = StockCache(None)
        self.catalog: Optional[CatalogClient] = None
        self.orders: Optional[OrderClient] = None
        self.cart: Optional[CartClient] = None
        self.inventory: Optional[InventoryClient] = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self, create_tables: bool = True, use_redis: bool = True) -> "ServiceContainer":
        if self.is_open:
            return self
        settings = self.settings

        self.engine = create_db_engine(settings.database_url)
        # 数据库连接检查，连不上直接启动失败
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.info("✅ Database connection successful")
        if create_tables:
            init_db(self.engine)
        self.session_factory = create_session_factory(self.engine)

        if use_redis:
            self.redis = ping_redis(create_redis(settings.redis_url))
            if self.redis is not None:
                logger.info("✅ Redis connected successfully")
            else:
                logger.warning("⚠️  Application will run without Redis caching")
        self.stock_cache = StockCache(self.redis, settings.STOCK_CACHE_TTL_SECONDS)

        self.catalog = CatalogClient(settings.CATALOG_SERVICE_URL, settings.CATALOG_TIMEOUT_SECONDS)
        self.orders = OrderClient(settings.ORDER_SERVICE_URL, settings.ORDER_TIMEOUT_SECONDS)
        self.cart = CartClient(settings.CART_SERVICE_URL, settings.CART_TIMEOUT_SECONDS)
        self.inventory = InventoryClient(settings.INVENTORY_SERVICE_URL, settings.INVENTORY_TIMEOUT_SECONDS)
        return self

    def close(self) -> None:
        for client in (self.catalog, self.orders, self.cart, self.inventory):
            if client is not None:
                client.close()
        self.catalog = self.orders = self.cart = self.inventory = None

        if self.redis is not None:
            self.redis.close()
            self.redis = None
        self.stock_cache = StockCache(None)

        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
        self.session_factory = None
        logger.info("资源已释放")

    def session(self):
        if self.session_factory is None:
            raise RuntimeError("ServiceContainer is not open")
        return self.session_factory()
