"""库存API专用的Pydantic模型和响应格式

请求模型的数值字段只做类型转换，正数、非负等业务校验在服务层完成，
统一返回 400 invalid_input。
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.models.inventory_reservations import ReservationStatus
from app.schemas.base import BaseResponse, CamelModel


# ==================== 请求模型 ====================

class ReserveRequest(CamelModel):
    """预占库存请求"""
    order_id: Optional[int] = Field(
        None,
        description="订单ID",
        examples=[5]
    )
    product_id: Optional[int] = Field(
        None,
        description="商品ID",
        examples=[9]
    )
    quantity: Optional[int] = Field(
        None,
        description="预占数量",
        examples=[2]
    )
    expires_at: Optional[str] = Field(
        None,
        description="预占过期时间（ISO-8601），为空表示不过期",
        examples=["2026-01-01T00:15:00Z"]
    )


class ReleaseRequest(CamelModel):
    """释放请求"""
    reason: Optional[str] = Field(
        None,
        max_length=255,
        description="释放原因，超过 80 个字符会被截断",
        examples=["order_cancelled"]
    )


class StockUpsertRequest(CamelModel):
    """设置总库存请求"""
    total_quantity: Optional[int] = Field(
        None,
        description="总库存数量，不能小于已预占数量",
        examples=[100]
    )


# ==================== 详细信息模型 ====================

class InventoryItemOut(CamelModel):
    """库存台账"""
    product_id: int
    total_quantity: int
    reserved_quantity: int
    available_quantity: int = Field(
        ...,
        ge=0,
        description="可用库存 = 总库存 - 已预占"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReservationOut(CamelModel):
    """预占记录详情"""
    id: int
    order_id: int
    product_id: int
    quantity: int
    status: ReservationStatus
    expires_at: Optional[datetime] = None
    release_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ==================== 响应模型 ====================

class InventoryItemResponse(BaseResponse, InventoryItemOut):
    """单个商品库存响应"""


class ReservationResponse(BaseResponse):
    """预占 / 单条释放响应"""
    reservation: ReservationOut
    inventory: Optional[InventoryItemOut] = None


class OrderReleaseResponse(BaseResponse):
    """按订单释放响应"""
    order_id: int
    released_count: int
    released_quantity: int
    reservations: List[ReservationOut] = []


class OrderConfirmResponse(BaseResponse):
    """按订单确认出库响应"""
    order_id: int
    confirmed_count: int
    confirmed_quantity: int
    reservations: List[ReservationOut] = []


class OrderReservationsResponse(BaseResponse):
    """订单下全部预占记录"""
    order_id: int
    count: int
    reservations: List[ReservationOut] = []


class ReleaseExpiredResponse(BaseResponse):
    """过期清理响应"""
    expired_count: int = Field(
        ...,
        ge=0,
        description="本次过期的预占数量"
    )
    expired_quantity: int = Field(
        ...,
        ge=0,
        description="归还的库存总数"
    )
    reservation_ids: List[int] = []
