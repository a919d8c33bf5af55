"""身份认证（令牌由用户服务签发，这里只做校验）"""

from dataclasses import dataclass
from typing import Any, Dict

from jose import JWTError, jwt

from app.core.exceptions import Unauthorized

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLE_SUPPLIER = "supplier"
ALLOWED_ROLES = {ROLE_USER, ROLE_ADMIN, ROLE_SUPPLIER}


@dataclass(frozen=True)
class Actor:
    """当前请求的操作人"""
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def normalize_role(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() in ALLOWED_ROLES:
        return value.strip().lower()
    return ROLE_USER


def decode_access_token(token: str, secret_key: str, algorithm: str = "HS256") -> Actor:
    """校验 JWT 并解析出操作人，任何问题都按未认证处理"""
    try:
        payload: Dict[str, Any] = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError:
        raise Unauthorized("令牌无效或已过期")

    subject = payload.get("sub", payload.get("id"))
    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise Unauthorized("令牌缺少用户信息")
    if user_id <= 0:
        raise Unauthorized("令牌缺少用户信息")

    return Actor(id=user_id, role=normalize_role(payload.get("role")))


def create_access_token(user_id: int, role: str, secret_key: str, algorithm: str = "HS256") -> str:
    """签发令牌（仅测试和本地调试使用）"""
    return jwt.encode({"sub": str(user_id), "role": role}, secret_key, algorithm=algorithm)
