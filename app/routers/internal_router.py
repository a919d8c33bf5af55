"""库存内部 API 路由（供订单服务和运维调用）

预占、按订单确认 / 释放、按预占 ID 释放、过期清理。
这些接口都是幂等的，调用方在超时后可以原样重试。
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, status

from app.core.dependencies import get_inventory_service
from app.core.exceptions import ServiceError
from app.schemas.inventory import (
    InventoryItemOut,
    OrderConfirmResponse,
    OrderReleaseResponse,
    OrderReservationsResponse,
    ReleaseExpiredResponse,
    ReleaseRequest,
    ReservationOut,
    ReservationResponse,
    ReserveRequest,
)
from app.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/internal",
    tags=["库存内部接口"],
    responses={
        400: {"description": "请求参数错误"},
        404: {"description": "资源未找到"},
        409: {"description": "状态冲突或库存不足"},
        502: {"description": "下游服务不可用"},
        500: {"description": "服务器内部错误"}
    }
)


def _reservation_response(result, message: str) -> ReservationResponse:
    inventory = result["inventory"]
    return ReservationResponse(
        message=message,
        reservation=ReservationOut.model_validate(result["reservation"]),
        inventory=InventoryItemOut.model_validate(inventory) if inventory is not None else None,
    )


@router.post(
    "/reservations",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="预占库存",
    description="""预占指定商品的库存数量，防止超卖。

    **特点：**
    - 使用数据库行级锁确保原子性
    - 同一订单同一商品重复请求相同数量时返回已有预占（幂等）
    - 数量不同则返回 409
    - expiresAt 到期后由过期清理释放
    """,
    responses={
        409: {
            "description": "库存不足或重复预占",
            "content": {
                "application/json": {
                    "examples": {
                        "insufficient_stock": {
                            "summary": "库存不足",
                            "value": {
                                "success": False,
                                "message": "库存不足，可用数量: 1",
                                "code": "insufficient_stock",
                                "availableQuantity": 1
                            }
                        },
                        "duplicate_reservation": {
                            "summary": "重复预占",
                            "value": {
                                "success": False,
                                "message": "Active reservation already exists with different quantity",
                                "code": "conflict"
                            }
                        }
                    }
                }
            }
        }
    }
)
def reserve_stock(
    request: ReserveRequest = Body(...),
    service: InventoryService = Depends(get_inventory_service),
):
    """预占库存（防超卖核心接口）"""
    try:
        result = service.reserve(
            request.order_id,
            request.product_id,
            request.quantity,
            request.expires_at,
        )
        return _reservation_response(result, "预占成功")
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"预占库存失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()


@router.post(
    "/reservations/release-expired",
    response_model=ReleaseExpiredResponse,
    summary="释放过期预占",
    description="""立即执行一次过期清理（不限条数）。

    后台定时清理和 Celery 任务走的是同一段逻辑。
    """,
)
def release_expired_reservations(
    service: InventoryService = Depends(get_inventory_service),
):
    """手动触发过期清理"""
    try:
        result = service.release_expired()
        return ReleaseExpiredResponse(message="清理完成", **result)
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"清理过期预占失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()


@router.post(
    "/reservations/{reservation_id}/release",
    response_model=ReservationResponse,
    summary="按预占ID释放",
    description="""释放单条预占；已经不是 ACTIVE 的预占原样返回。""",
)
def release_reservation(
    reservation_id: int = Path(
        ...,
        description="预占ID",
        examples=[1]
    ),
    request: Optional[ReleaseRequest] = Body(None),
    service: InventoryService = Depends(get_inventory_service),
):
    """释放单条预占"""
    try:
        result = service.release_reservation(reservation_id, request.reason if request else None)
        return _reservation_response(result, "释放成功")
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"释放预占失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()


@router.post(
    "/orders/{order_id}/release",
    response_model=OrderReleaseResponse,
    summary="释放订单预占",
    description="""释放订单下所有 ACTIVE 预占，归还给可用库存。

    **使用场景：**
    - 用户取消订单
    - 创建订单失败后的补偿

    **效果：**
    - 减少预占库存
    - 更新预占状态为RELEASED
    - 重复调用不会重复归还
    """,
)
def release_order(
    order_id: int = Path(
        ...,
        description="订单ID",
        examples=[5]
    ),
    request: Optional[ReleaseRequest] = Body(None),
    service: InventoryService = Depends(get_inventory_service),
):
    """释放订单预占"""
    try:
        result = service.release_order(order_id, request.reason if request else None)
        return OrderReleaseResponse(
            message="释放成功",
            order_id=result["order_id"],
            released_count=result["released_count"],
            released_quantity=result["released_quantity"],
            reservations=[ReservationOut.model_validate(r) for r in result["reservations"]],
        )
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"释放库存失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()


@router.post(
    "/orders/{order_id}/confirm",
    response_model=OrderConfirmResponse,
    summary="确认库存扣减",
    description="""确认订单的预占，实际扣减商品库存。

    **使用场景：**
    - 订单发货

    **注意：**
    - 只处理状态为ACTIVE的预占记录
    - 总库存和预占库存同时扣减
    - 没有 ACTIVE 预占时什么都不做
    """,
)
def confirm_order(
    order_id: int = Path(
        ...,
        description="订单ID",
        examples=[5]
    ),
    service: InventoryService = Depends(get_inventory_service),
):
    """确认库存扣减（发货时调用）"""
    try:
        result = service.confirm_order(order_id)
        return OrderConfirmResponse(
            message="确认成功",
            order_id=result["order_id"],
            confirmed_count=result["confirmed_count"],
            confirmed_quantity=result["confirmed_quantity"],
            reservations=[ReservationOut.model_validate(r) for r in result["reservations"]],
        )
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"确认库存失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()


@router.get(
    "/orders/{order_id}/reservations",
    response_model=OrderReservationsResponse,
    summary="查询订单预占记录",
)
def list_order_reservations(
    order_id: int = Path(
        ...,
        description="订单ID",
        examples=[5]
    ),
    service: InventoryService = Depends(get_inventory_service),
):
    """查询订单下全部预占记录（排查用）"""
    try:
        reservations = service.list_reservations_for_order(order_id)
        return OrderReservationsResponse(
            order_id=order_id,
            count=len(reservations),
            reservations=[ReservationOut.model_validate(r) for r in reservations],
        )
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"查询订单预占失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()
