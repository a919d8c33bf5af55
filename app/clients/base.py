"""下游服务 HTTP 客户端基类

所有跨服务调用都是同步请求并带超时。超时或连接失败统一抛
Unavailable，调用方不能据此推断资源不存在。
"""

import logging
from typing import Any, Dict, Optional

import requests

from app.core.exceptions import Unavailable, error_from_response

logger = logging.getLogger(__name__)


class ServiceClient:
    service_name = "下游服务"

    def __init__(self, base_url: str, timeout: float = 3.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.warning(f"{self.service_name}请求超时: {method} {url}: {e}")
            raise Unavailable(f"{self.service_name}请求超时")
        except requests.exceptions.RequestException as e:
            logger.warning(f"{self.service_name}连接失败: {method} {url}: {e}")
            raise Unavailable(f"{self.service_name}不可用")

        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = None

        if 200 <= response.status_code < 300:
            return payload

        raise error_from_response(
            response.status_code,
            payload,
            f"{self.service_name}不可用",
        )
