# app/schemas/order.py
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.models.orders import OrderStatus
from app.schemas.base import BaseResponse, CamelModel


class OrderItemOut(CamelModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    product_image_url: Optional[str] = None
    quantity: int
    unit_price: float
    line_total: float


class OrderOut(CamelModel):
    id: int
    user_id: int
    status: OrderStatus
    currency: str
    items_count: int
    total_amount: float
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemOut] = []


# 从购物车下单请求
class CreateOrderRequest(CamelModel):
    product_id: Optional[int] = Field(
        None,
        description="购物车中的商品ID",
        examples=[9]
    )
    quantity: Optional[int] = Field(
        None,
        description="下单数量，为空时取购物车中的全部数量",
        examples=[2]
    )


class UpdateOrderStatusRequest(CamelModel):
    status: Optional[str] = Field(
        None,
        description="目标状态：paid / shipped / delivered / cancelled",
        examples=["paid"]
    )


class OrderResponse(BaseResponse):
    order: OrderOut


class OrderListResponse(BaseResponse):
    count: int
    orders: List[OrderOut] = []


class OrderExistsResponse(BaseResponse):
    exists: bool = True
    order: OrderOut
