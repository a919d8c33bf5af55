"""库存公开 API 路由（查询库存、设置总库存）"""

import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Path

from app.core.dependencies import get_inventory_service, require_roles
from app.core.exceptions import ServiceError
from app.core.security import ROLE_ADMIN, ROLE_SUPPLIER, Actor
from app.schemas.inventory import InventoryItemOut, InventoryItemResponse, StockUpsertRequest
from app.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/inventory",
    tags=["库存管理"],
    responses={
        400: {"description": "请求参数错误"},
        404: {"description": "资源未找到"},
        422: {"description": "请求验证失败"},
        500: {"description": "服务器内部错误"}
    }
)


@router.get(
    "/{product_id}",
    response_model=InventoryItemResponse,
    summary="查询商品库存",
    description="""查询指定商品的总库存、已预占和可用库存。

    **缓存策略：**
    - 首先查询Redis缓存
    - 缓存未命中则查询数据库
    - 任何库存变更提交后删除缓存
    """,
    responses={
        200: {
            "description": "查询成功",
            "content": {
                "application/json": {
                    "example": {
                        "success": True,
                        "productId": 9,
                        "totalQuantity": 10,
                        "reservedQuantity": 2,
                        "availableQuantity": 8
                    }
                }
            }
        }
    }
)
def get_inventory(
    product_id: int = Path(
        ...,
        description="商品ID",
        examples=[9]
    ),
    service: InventoryService = Depends(get_inventory_service),
):
    """查询商品库存（带缓存）"""
    try:
        snapshot = service.get_inventory_snapshot(product_id)
        return InventoryItemResponse(**InventoryItemOut.model_validate(snapshot).model_dump())
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"查询库存失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()


@router.put(
    "/{product_id}/stock",
    response_model=InventoryItemResponse,
    summary="设置商品总库存",
    description="""设置商品的总库存，不存在时创建库存行。

    **权限：** admin / supplier

    **校验：**
    - 商品必须在商品服务中存在
    - 总库存不能小于当前已预占数量
    """,
    responses={
        403: {"description": "无权限"},
        502: {"description": "商品服务不可用"}
    }
)
def upsert_stock(
    product_id: int = Path(
        ...,
        description="商品ID",
        examples=[9]
    ),
    request: StockUpsertRequest = Body(...),
    actor: Actor = Depends(require_roles(ROLE_ADMIN, ROLE_SUPPLIER)),
    service: InventoryService = Depends(get_inventory_service),
):
    """设置总库存（管理员 / 供应商）"""
    try:
        item = service.upsert_stock(product_id, request.total_quantity)
        logger.info(f"库存已更新: product_id={product_id}, actor_id={actor.id}")
        return InventoryItemResponse(
            message="库存已更新",
            **InventoryItemOut.model_validate(item).model_dump(),
        )
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"设置库存失败: {str(e)}", exc_info=True)
        # 未知异常统一抛 500
        raise ServiceError()
