from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.core.config import Settings, settings as default_settings
from app.core.container import ServiceContainer
from app.core.exceptions import InsufficientStock, ServiceError
from app.jobs.expiry_sweeper import ExpirySweeper
from app.routers import internal_router, inventory_router, order_router
from app.schemas.base import APIInfoResponse, ErrorResponse, HealthCheckResponse

import uvicorn

# 配置日志
logging.basicConfig(
    level=getattr(logging, default_settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """创建应用；测试可以传入已打开的 container"""
    settings = settings or default_settings
    container = container or ServiceContainer(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # 应用启动时的初始化
        logger.info("Starting application...")
        owns_container = not container.is_open
        if owns_container:
            container.open()

        sweeper = ExpirySweeper(
            container.session_factory,
            settings.RESERVATION_SWEEP_INTERVAL_SECONDS,
            cache=container.stock_cache,
        )
        app.state.sweeper = sweeper
        sweeper.start()

        yield

        # 应用关闭时的清理
        logger.info("Shutting down application...")
        await sweeper.stop()
        if owns_container:
            container.close()

    app = FastAPI(
        title="订单履约服务 API",
        description="库存预占引擎 + 订单 Saga：预占、确认出库、释放和过期清理，防超卖",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.container = container

    # 添加 CORS 中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册路由（内部调用方使用固定路径，不加版本前缀）
    app.include_router(inventory_router.router)
    app.include_router(internal_router.router)
    app.include_router(order_router.router)
    app.include_router(order_router.internal_router)

    # 全局异常处理
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(f"Validation error: {exc}")
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "message": "请求参数验证失败",
                "code": "validation_error",
                "details": jsonable_encoder(exc.errors())
            }
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if exc.status_code >= 500:
            logger.error(f"HTTP error: {exc.status_code} - {exc.detail}")
        else:
            logger.info(f"HTTP error: {exc.status_code} - {exc.detail}")
        content = ErrorResponse(
            message=exc.detail,
            code=exc.code if isinstance(exc, ServiceError) else None,
            available_quantity=exc.available_quantity if isinstance(exc, InsufficientStock) else None,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=content.model_dump(by_alias=True, exclude_none=True),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "服务器内部错误",
                "code": ServiceError.code
            }
        )

    # 健康检查端点
    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check():
        """健康检查接口"""
        return {
            "status": "healthy",
            "service": settings.SERVICE_NAME,
            "version": "1.0.0"
        }

    @app.get("/", response_model=APIInfoResponse)
    async def read_root():
        """API 根路径"""
        return {
            "message": "欢迎使用订单履约服务",
            "docs": "/docs",
            "health": "/health"
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
