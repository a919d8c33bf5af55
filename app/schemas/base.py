"""公共响应字段和基础模型"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """对外字段用 camelCase，Python 内部用 snake_case；支持从 ORM 对象直接生成"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class BaseResponse(CamelModel):
    """基础响应模型"""
    success: bool = Field(
        True,
        description="请求是否成功"
    )
    message: Optional[str] = Field(
        None,
        description="响应消息"
    )


class ErrorResponse(BaseResponse):
    """错误响应"""
    success: bool = False
    code: Optional[str] = Field(
        None,
        description="错误码，例如 not_found / conflict / insufficient_stock"
    )
    available_quantity: Optional[int] = Field(
        None,
        description="库存不足时返回当前可用数量"
    )


class HealthCheckResponse(BaseModel):
    """健康检查响应"""
    status: str = Field(
        "healthy",
        description="服务状态"
    )
    service: str = Field(
        ...,
        description="服务名称"
    )
    version: str = Field(
        "1.0.0",
        description="服务版本"
    )


class APIInfoResponse(BaseModel):
    """API信息响应"""
    message: str = Field(
        ...,
        description="欢迎信息"
    )
    docs: str = Field(
        "/docs",
        description="API文档路径"
    )
    health: str = Field(
        "/health",
        description="健康检查路径"
    )
