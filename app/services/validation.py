"""入参校验：在拿任何锁之前完成"""

from datetime import datetime, timezone
from typing import Any, Optional

from app.core.exceptions import InvalidInput

MAX_REASON_LENGTH = 80


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def to_positive_int(value: Any, field_name: str) -> int:
    normalized = _to_int(value)
    if normalized is None or normalized <= 0:
        raise InvalidInput(f"Invalid {field_name}")
    return normalized


def to_non_negative_int(value: Any, field_name: str) -> int:
    normalized = _to_int(value)
    if normalized is None or normalized < 0:
        raise InvalidInput(f"{field_name} must be a non-negative integer")
    return normalized


def normalize_reason(value: Any, fallback: str) -> str:
    if not isinstance(value, str) or not value.strip():
        return fallback
    return value.strip()[:MAX_REASON_LENGTH]


def normalize_expires_at(value: Any) -> Optional[datetime]:
    """统一转成 UTC；无时区的时间按 UTC 处理"""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise InvalidInput("expiresAt must be a valid ISO date-time")
    if not isinstance(value, datetime):
        raise InvalidInput("expiresAt must be a valid ISO date-time")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
