"""统一错误类型

服务层直接抛出这些异常；它们是 HTTPException 的子类，
路由层原样透传，由 main.py 的异常处理器渲染成统一的错误响应。
`code` 会随响应返回，下游客户端据此还原出相同的异常类型。
"""

from typing import Any, Dict, Optional, Type

from fastapi import HTTPException


class ServiceError(HTTPException):
    status_code = 500
    code = "internal"
    default_message = "服务器内部错误"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(
            status_code=status_code or self.status_code,
            detail=message or self.default_message,
        )

    @property
    def message(self) -> str:
        return self.detail


class InvalidInput(ServiceError):
    status_code = 400
    code = "invalid_input"
    default_message = "请求参数错误"


class Unauthorized(ServiceError):
    status_code = 401
    code = "unauthorized"
    default_message = "未登录或令牌无效"


class Forbidden(ServiceError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"
    default_message = "资源未找到"


class Conflict(ServiceError):
    status_code = 409
    code = "conflict"
    default_message = "状态冲突"


class InsufficientStock(Conflict):
    code = "insufficient_stock"

    def __init__(self, available_quantity: int, message: Optional[str] = None):
        self.available_quantity = available_quantity
        super().__init__(message or f"库存不足，可用数量: {available_quantity}")


class InvalidTransition(Conflict):
    code = "invalid_transition"


class Unavailable(ServiceError):
    status_code = 502
    code = "unavailable"
    default_message = "下游服务不可用"


_ERRORS_BY_CODE: Dict[str, Type[ServiceError]] = {
    cls.code: cls
    for cls in (
        InvalidInput,
        Unauthorized,
        Forbidden,
        NotFound,
        Conflict,
        InvalidTransition,
        Unavailable,
    )
}


def error_from_response(status_code: int, payload: Any, default_message: str) -> ServiceError:
    """把下游服务的错误响应还原成本地异常

    优先使用响应里的 code；没有时按状态码映射。
    下游的认证失败和 5xx 都视为不可用，不向调用方暴露。
    """
    body = payload if isinstance(payload, dict) else {}
    message = body.get("message") or default_message
    code = body.get("code")

    if code == InsufficientStock.code:
        return InsufficientStock(int(body.get("availableQuantity") or 0), message)
    if code in _ERRORS_BY_CODE and code not in (Unauthorized.code, Forbidden.code):
        return _ERRORS_BY_CODE[code](message)

    if status_code == 400:
        return InvalidInput(message)
    if status_code == 404:
        return NotFound(message)
    if status_code == 409:
        return Conflict(message)
    if status_code in (401, 403) or status_code >= 500:
        return Unavailable(message)
    if 400 <= status_code < 500:
        return ServiceError(message, status_code=status_code)
    return Unavailable(message)
