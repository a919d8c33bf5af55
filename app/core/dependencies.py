"""依赖注入配置模块

所有资源都来自 app.state.container，测试通过 app.dependency_overrides 替换。
"""

from typing import Callable, Generator, Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.container import ServiceContainer
from app.core.exceptions import Forbidden, Unauthorized
from app.core.redis import StockCache
from app.core.security import Actor, decode_access_token
from app.db.session import session_scope
from app.services.inventory_service import InventoryService
from app.services.order_service import OrderService

bearer_scheme = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    """获取应用资源容器"""
    return request.app.state.container


def get_settings(container: ServiceContainer = Depends(get_container)) -> Settings:
    return container.settings


def get_db(container: ServiceContainer = Depends(get_container)) -> Generator[Session, None, None]:
    """获取数据库会话"""
    yield from session_scope(container.session_factory)


def get_stock_cache(container: ServiceContainer = Depends(get_container)) -> StockCache:
    return container.stock_cache


def get_inventory_service(
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
    cache: StockCache = Depends(get_stock_cache),
) -> InventoryService:
    """获取库存服务实例（依赖注入）"""
    return InventoryService(db=db, catalog=container.catalog, orders=container.orders, cache=cache)


def get_order_service(
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
    settings: Settings = Depends(get_settings),
) -> OrderService:
    """获取订单服务实例（依赖注入）"""
    return OrderService(
        db=db,
        inventory=container.inventory,
        cart=container.cart,
        reservation_ttl_seconds=settings.INVENTORY_RESERVATION_TTL_SECONDS,
    )


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Actor:
    """解析 Bearer 令牌得到当前操作人"""
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Unauthorized")
    return decode_access_token(credentials.credentials, settings.JWT_SECRET_KEY, settings.JWT_ALGORITHM)


def get_authorization(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """原样取出 Authorization 头，转发给购物车服务"""
    return authorization


def require_roles(*roles: str) -> Callable[..., Actor]:
    """限制角色，例如 Depends(require_roles("admin", "supplier"))"""

    def checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise Forbidden("Forbidden")
        return actor

    return checker

