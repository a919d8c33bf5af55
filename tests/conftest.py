"""测试配置和 fixtures"""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from redis import Redis

from app.clients import CatalogClient, OrderClient
from app.core.config import Settings
from app.core.container import ServiceContainer
from app.core.dependencies import get_db
from app.core.redis import StockCache
from app.core.security import ROLE_ADMIN, ROLE_SUPPLIER, ROLE_USER, Actor, create_access_token
from app.db import Base, create_db_engine, create_session_factory, init_db
from app.main import create_app
from app.models.inventory_items import InventoryItem
from app.models.inventory_reservations import InventoryReservation, ReservationStatus
from app.models.orders import Order, OrderStatus
from app.services.inventory_service import InventoryService
from app.services.order_service import OrderService
from app.services.validation import utcnow


@pytest.fixture
def engine():
    """内存 SQLite（StaticPool，所有会话共用一个连接）"""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    """创建数据库会话"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def mock_redis():
    """创建模拟 Redis 客户端"""
    redis_mock = Mock(spec=Redis)
    redis_mock.get.return_value = None
    redis_mock.setex.return_value = True
    redis_mock.delete.return_value = 1
    return redis_mock


@pytest.fixture
def stock_cache(mock_redis):
    return StockCache(mock_redis, ttl_seconds=300)


@pytest.fixture
def catalog_client():
    """商品服务：默认商品都存在"""
    client = Mock(spec=CatalogClient, unsafe=True)
    client.assert_product_exists.return_value = None
    return client


@pytest.fixture
def order_client():
    """订单服务：默认订单都存在"""
    client = Mock(spec=OrderClient, unsafe=True)
    client.assert_order_exists.return_value = None
    return client


@pytest.fixture
def inventory_service(db_session):
    """不依赖下游服务的库存服务"""
    return InventoryService(db_session)


@pytest.fixture
def remote_inventory(db_session):
    """进程内的“远程”库存服务：真实执行，同时记录调用"""
    return Mock(wraps=InventoryService(db_session))


@pytest.fixture
def cart_items():
    return [
        {
            "productId": 9,
            "quantity": 3,
            "unitPrice": "19.99",
            "productName": "机械键盘",
            "productImageUrl": "https://img.example.com/9.png",
        }
    ]


@pytest.fixture
def cart_client(cart_items):
    client = Mock()
    client.fetch_my_cart.return_value = {"id": 1, "currency": "usd", "items": cart_items}
    return client


@pytest.fixture
def order_service(db_session, remote_inventory, cart_client):
    return OrderService(db_session, inventory=remote_inventory, cart=cart_client)


@pytest.fixture
def user():
    return Actor(id=1, role=ROLE_USER)


@pytest.fixture
def other_user():
    return Actor(id=2, role=ROLE_USER)


@pytest.fixture
def admin():
    return Actor(id=99, role=ROLE_ADMIN)


@pytest.fixture
def supplier():
    return Actor(id=50, role=ROLE_SUPPLIER)


@pytest.fixture
def make_stock(db_session):
    """直接写入库存行"""

    def _make(product_id: int, total: int, reserved: int = 0) -> InventoryItem:
        item = InventoryItem(product_id=product_id, total_quantity=total, reserved_quantity=reserved)
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture
def make_order(db_session):
    """直接写入订单行"""

    def _make(user_id: int = 1, status: OrderStatus = OrderStatus.PENDING) -> Order:
        order = Order(
            user_id=user_id,
            status=status,
            currency="USD",
            items_count=1,
            total_amount=Decimal("39.98"),
        )
        db_session.add(order)
        db_session.commit()
        return order

    return _make


@pytest.fixture
def make_reservation(db_session):
    """直接写入预占行（不改库存，用于构造脏数据）"""

    def _make(
        order_id: int,
        product_id: int,
        quantity: int,
        status: ReservationStatus = ReservationStatus.ACTIVE,
        expires_in_seconds=None,
    ) -> InventoryReservation:
        reservation = InventoryReservation(
            order_id=order_id,
            product_id=product_id,
            quantity=quantity,
            status=status,
            expires_at=utcnow() + timedelta(seconds=expires_in_seconds) if expires_in_seconds is not None else None,
        )
        db_session.add(reservation)
        db_session.commit()
        return reservation

    return _make


# ==================== HTTP 层 ====================

TEST_JWT_SECRET = "test-secret"


@pytest.fixture
def test_settings():
    return Settings(
        DATABASE_URL="sqlite://",
        JWT_SECRET_KEY=TEST_JWT_SECRET,
        RESERVATION_SWEEP_INTERVAL_SECONDS=0,
    )


@pytest.fixture
def app(test_settings, db_session, stock_cache, catalog_client, order_client, remote_inventory, cart_client):
    """测试应用：下游客户端换成 Mock，数据库会话共用 db_session"""
    container = ServiceContainer(test_settings)
    container.stock_cache = stock_cache
    container.catalog = catalog_client
    container.orders = order_client
    container.cart = cart_client
    container.inventory = remote_inventory

    application = create_app(test_settings, container)

    def override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
def client(app):
    """创建测试客户端（不触发 lifespan）"""
    return TestClient(app)


@pytest.fixture
def auth_header():
    def _header(actor: Actor) -> dict:
        token = create_access_token(actor.id, actor.role, TEST_JWT_SECRET)
        return {"Authorization": f"Bearer {token}"}

    return _header
