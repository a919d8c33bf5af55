"""订单 API 路由

下单、查询、取消和管理员改状态。状态变更触发的库存操作由 OrderService 完成。
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, status

from app.core.dependencies import (
    get_authorization,
    get_current_actor,
    get_order_service,
    require_roles,
)
from app.core.exceptions import NotFound, ServiceError
from app.core.security import ROLE_ADMIN, ROLE_USER, Actor
from app.schemas.order import (
    CreateOrderRequest,
    OrderExistsResponse,
    OrderListResponse,
    OrderOut,
    OrderResponse,
    UpdateOrderStatusRequest,
)
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/orders",
    tags=["订单管理"],
    responses={
        400: {"description": "请求参数错误"},
        401: {"description": "未登录"},
        403: {"description": "无权限"},
        404: {"description": "订单不存在"},
        409: {"description": "状态不允许或库存不足"},
        502: {"description": "下游服务不可用"},
        500: {"description": "服务器内部错误"}
    }
)
internal_router = APIRouter(
    prefix="/internal/orders",
    tags=["订单内部接口"],
)


def _order_list(orders) -> OrderListResponse:
    return OrderListResponse(
        count=len(orders),
        orders=[OrderOut.model_validate(order) for order in orders],
    )


@router.post(
    "/me",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="从购物车下单",
    description="""用购物车中的一个商品创建订单，并预占库存。

    **流程：**
    1. 读取当前用户的购物车
    2. 写入 pending 订单
    3. 调用库存服务预占
    4. 写入订单明细

    第 2 步之后任何一步失败，都会释放预占并把订单标记为 cancelled。
    """,
)
def create_my_order(
    request: CreateOrderRequest = Body(...),
    actor: Actor = Depends(require_roles(ROLE_USER)),
    authorization: Optional[str] = Depends(get_authorization),
    service: OrderService = Depends(get_order_service),
):
    """从购物车创建订单"""
    try:
        order = service.create_order_from_cart_item(
            actor,
            authorization,
            request.product_id,
            request.quantity,
        )
        return OrderResponse(message="下单成功", order=OrderOut.model_validate(order))
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"创建订单失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()


@router.get(
    "/me",
    response_model=OrderListResponse,
    summary="我的订单",
)
def list_my_orders(
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """当前用户的订单，按创建时间倒序"""
    try:
        return _order_list(service.list_orders_for_user(actor.id, actor))
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"查询订单失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()


@router.get(
    "/user/{user_id}",
    response_model=OrderListResponse,
    summary="按用户查询订单",
    description="""本人或管理员可查。""",
)
def list_user_orders(
    user_id: int = Path(
        ...,
        description="用户ID",
        examples=[1]
    ),
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    try:
        return _order_list(service.list_orders_for_user(user_id, actor))
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"查询订单失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="订单详情",
)
def get_order(
    order_id: int = Path(
        ...,
        description="订单ID",
        examples=[5]
    ),
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    try:
        order = service.get_order_for_actor(order_id, actor)
        return OrderResponse(order=OrderOut.model_validate(order))
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"查询订单失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()


@router.patch(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="取消订单",
    description="""只有 pending 订单可以取消，已取消的订单重复取消直接返回。

    取消与释放预占在同一个本地事务里，释放失败则取消不生效。
    """,
)
def cancel_order(
    order_id: int = Path(
        ...,
        description="订单ID",
        examples=[5]
    ),
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    try:
        order = service.cancel_order(order_id, actor)
        return OrderResponse(message="订单已取消", order=OrderOut.model_validate(order))
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"取消订单失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="修改订单状态（管理员）",
    description="""按状态机修改订单状态：

    - pending → paid / cancelled
    - paid → shipped / cancelled
    - shipped → delivered

    取消会释放预占，发货会确认出库。
    """,
)
def update_order_status(
    order_id: int = Path(
        ...,
        description="订单ID",
        examples=[5]
    ),
    request: UpdateOrderStatusRequest = Body(...),
    actor: Actor = Depends(require_roles(ROLE_ADMIN)),
    service: OrderService = Depends(get_order_service),
):
    try:
        order = service.update_order_status(order_id, actor, request.status)
        return OrderResponse(message="订单状态已更新", order=OrderOut.model_validate(order))
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"修改订单状态失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()


@internal_router.get(
    "/{order_id}/exists",
    response_model=OrderExistsResponse,
    summary="订单是否存在（库存服务调用）",
)
def order_exists(
    order_id: int = Path(
        ...,
        description="订单ID",
        examples=[5]
    ),
    service: OrderService = Depends(get_order_service),
):
    try:
        order = service.get_order(order_id)
        if order is None:
            raise NotFound("Order not found")
        return OrderExistsResponse(exists=True, order=OrderOut.model_validate(order))
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"查询订单是否存在失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()
