"""
REST API客户端基类

提供通用的HTTP请求功能，包括：
- 可选重试（默认关闭，存储会话调用不是幂等的）
- 错误归类：超时 / 网络 / 业务拒绝
- 请求/响应日志（不记录认证头与预签名URL的查询串）
- 超时控制
"""
import json
from typing import Dict, Any, Optional, Union
from dataclasses import dataclass
from enum import Enum
import httpx
from pydantic import BaseModel
import logging
from datetime import datetime

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

logger = logging.getLogger(__name__)


class HTTPMethod(Enum):
    """HTTP方法枚举"""
    POST = "POST"
    PUT = "PUT"


@dataclass
class APIResponse:
    """API响应封装"""
    status_code: int
    headers: Dict[str, str]
    data: Any
    raw_content: bytes
    elapsed_ms: float
    request_id: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    def header(self, name: str) -> Optional[str]:
        """大小写无关地读取响应头"""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def json(self) -> Any:
        if self.data is not None:
            return self.data
        if not self.raw_content:
            return {}
        return json.loads(self.raw_content)


class APIError(Exception):
    """API错误基类"""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[APIResponse] = None,
        request_id: Optional[str] = None
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        self.request_id = request_id
        super().__init__(self.message)

    def __str__(self):
        parts = [self.message]
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        if self.request_id:
            parts.append(f"Request ID: {self.request_id}")
        return " | ".join(parts)


class APITimeoutError(APIError):
    """请求超时"""
    pass


class APIConnectionError(APIError):
    """网络层错误（连接失败、连接被重置等）"""
    pass


class RetryableAPIError(APIError):
    """可重试的API错误"""
    pass


RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


def redact_url(url: str) -> str:
    """去掉查询串：预签名URL的签名在查询串里"""
    return url.split("?", 1)[0]


class BaseAPIClient:
    """
    REST API客户端基类

    子类负责具体端点；本类只负责发送、计时、日志与错误归类。
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        max_retries: int = 0,
        retry_delay: float = 0.5,
        headers: Optional[Dict[str, str]] = None,
        auth_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        debug: bool = False
    ):
        """
        初始化API客户端

        Args:
            base_url: API基础URL；为空时端点必须是绝对URL
            timeout: 单次请求超时时间（秒）
            max_retries: 传输错误/5xx 的最大重试次数
            retry_delay: 重试延迟（秒）
            headers: 默认请求头
            auth_token: 认证令牌
            transport: 自定义 httpx 传输层（测试用 MockTransport）
            debug: 是否记录请求/响应调试日志
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.debug = debug
        self._transport = transport

        self.default_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "StorageRelay/1.0"
        }
        if headers:
            self.default_headers.update(headers)

        if auth_token:
            self.set_auth_token(auth_token)

        self._client: Optional[httpx.AsyncClient] = None

    def set_auth_token(self, token: str, header_name: str = "Authorization", prefix: str = "Bearer"):
        """设置认证令牌"""
        self.default_headers[header_name] = f"{prefix} {token}" if prefix else token

    @property
    async def client(self) -> httpx.AsyncClient:
        """获取或创建HTTP客户端"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                follow_redirects=True
            )
        return self._client

    async def close(self):
        """关闭HTTP客户端"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _build_url(self, endpoint: str) -> str:
        """构建完整URL；绝对URL原样返回"""
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        endpoint = endpoint.lstrip('/')
        return f"{self.base_url}/{endpoint}"

    def _log_request(self, method: str, url: str, **kwargs):
        if self.debug:
            logger.debug(
                f"API Request: {method} {redact_url(url)}",
                extra={
                    "method": method,
                    "url": redact_url(url),
                    "headers": {k: v for k, v in kwargs.get("headers", {}).items()
                                if k.lower() not in {"authorization", "x-api-key"}}
                }
            )

    def _log_response(self, response: APIResponse):
        if self.debug:
            logger.debug(
                f"API Response: {response.status_code}",
                extra={
                    "status_code": response.status_code,
                    "elapsed_ms": response.elapsed_ms,
                    "request_id": response.request_id,
                }
            )

    @staticmethod
    def error_message(response: APIResponse) -> str:
        """从错误响应中提取消息"""
        message = f"API request failed with status {response.status_code}"
        data = response.data
        if isinstance(data, dict):
            for field in ("error", "message", "detail"):
                value = data.get(field)
                if isinstance(value, str) and value:
                    return value
                if isinstance(value, dict) and isinstance(value.get("message"), str):
                    return value["message"]
        return message

    def _handle_error_response(self, response: APIResponse):
        """处理错误响应"""
        raise APIError(
            message=self.error_message(response),
            status_code=response.status_code,
            response=response,
            request_id=response.request_id
        )

    async def _request(
        self,
        method: Union[str, HTTPMethod],
        endpoint: str,
        json_data: Optional[Union[Dict[str, Any], BaseModel]] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs
    ) -> APIResponse:
        """
        发送HTTP请求

        Returns:
            APIResponse: 2xx 响应

        Raises:
            APITimeoutError: 超时
            APIConnectionError: 网络错误
            APIError: 非 2xx 响应（携带 status_code）
        """
        if isinstance(method, HTTPMethod):
            method = method.value

        url = self._build_url(endpoint)

        request_headers = {**self.default_headers}
        if headers:
            request_headers.update(headers)

        if isinstance(json_data, BaseModel):
            json_data = json_data.model_dump(mode="json", exclude_none=True)

        self._log_request(method, url, headers=request_headers)

        async def _send_once() -> APIResponse:
            start_time = datetime.now()
            client = await self.client
            response = await client.request(
                method=method,
                url=url,
                json=json_data,
                headers=request_headers,
                **kwargs
            )

            elapsed = (datetime.now() - start_time).total_seconds() * 1000

            content_type = response.headers.get("content-type", "")
            response_data = None
            if "application/json" in content_type:
                try:
                    response_data = response.json()
                except json.JSONDecodeError:
                    response_data = None

            api_response = APIResponse(
                status_code=response.status_code,
                headers=dict(response.headers),
                data=response_data,
                raw_content=response.content,
                elapsed_ms=elapsed,
                request_id=response.headers.get("x-request-id")
            )

            self._log_response(api_response)

            if api_response.is_error and api_response.status_code in RETRY_STATUS_CODES:
                raise RetryableAPIError(
                    message=self.error_message(api_response),
                    status_code=api_response.status_code,
                    response=api_response,
                    request_id=api_response.request_id,
                )

            if api_response.is_error:
                self._handle_error_response(api_response)

            return api_response

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.retry_delay,
                min=self.retry_delay,
                max=self.retry_delay * 8
            ),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError, RetryableAPIError)),
            before_sleep=before_sleep_log(logger, logging.WARNING)
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await _send_once()
        except httpx.TimeoutException as exc:
            raise APITimeoutError(f"Request timeout after {self.timeout}s") from exc
        except httpx.TransportError as exc:
            raise APIConnectionError(f"Network error: {exc}") from exc
        except RetryableAPIError as exc:
            raise APIError(
                exc.message,
                status_code=exc.status_code,
                response=exc.response,
                request_id=exc.request_id,
            ) from exc
        raise APIError("Request was not attempted")  # pragma: no cover

    async def post(self, endpoint: str, **kwargs) -> APIResponse:
        """POST请求"""
        return await self._request(HTTPMethod.POST, endpoint, **kwargs)

    async def put(self, endpoint: str, **kwargs) -> APIResponse:
        """PUT请求"""
        return await self._request(HTTPMethod.PUT, endpoint, **kwargs)
