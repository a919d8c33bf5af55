import os
from typing import Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    SERVICE_NAME: str = os.getenv("SERVICE_NAME", "order-fulfillment-service")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # 数据库配置
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "123456")
    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT: int = int(os.getenv("POSTGRES_PORT", "5432"))
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "mydb")
    # 完整 DSN，设置后覆盖上面的分项（测试用 sqlite）
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")

    # Redis 配置
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    STOCK_CACHE_TTL_SECONDS: int = int(os.getenv("STOCK_CACHE_TTL_SECONDS", "300"))

    # 下游服务
    CATALOG_SERVICE_URL: str = os.getenv("CATALOG_SERVICE_URL", "http://localhost:3004")
    CATALOG_TIMEOUT_SECONDS: float = float(os.getenv("CATALOG_TIMEOUT_SECONDS", "3"))
    ORDER_SERVICE_URL: str = os.getenv("ORDER_SERVICE_URL", "http://localhost:8000")
    ORDER_TIMEOUT_SECONDS: float = float(os.getenv("ORDER_TIMEOUT_SECONDS", "3"))
    CART_SERVICE_URL: str = os.getenv("CART_SERVICE_URL", "http://localhost:3002")
    CART_TIMEOUT_SECONDS: float = float(os.getenv("CART_TIMEOUT_SECONDS", "4"))
    INVENTORY_SERVICE_URL: str = os.getenv("INVENTORY_SERVICE_URL", "http://localhost:8000")
    INVENTORY_TIMEOUT_SECONDS: float = float(os.getenv("INVENTORY_TIMEOUT_SECONDS", "4"))

    # 预占与清理
    INVENTORY_RESERVATION_TTL_SECONDS: int = int(os.getenv("INVENTORY_RESERVATION_TTL_SECONDS", "900"))
    RESERVATION_SWEEP_INTERVAL_SECONDS: float = float(os.getenv("RESERVATION_SWEEP_INTERVAL_SECONDS", "60"))
    SWEEP_BATCH_SIZE: int = int(os.getenv("SWEEP_BATCH_SIZE", "500"))

    # Celery（broker / backend 分库）
    CELERY_BROKER_URL: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
    CELERY_RESULT_BACKEND: str = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/2")

    # 身份认证（令牌由用户服务签发）
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://"
            f"{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/"
            f"{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

settings = Settings()
