"""
统一错误响应格式定义

Relay 成功时透传后端结果字段；失败时返回带 ``error`` 字段的 JSON 体。
"""
from typing import Any, Optional
from pydantic import BaseModel, Field, field_serializer
from datetime import datetime, timezone
from shared.codes import BusinessCode


class ErrorResponse(BaseModel):
    """错误响应模型"""
    error: str
    type: str = "BusinessError"
    code: int = BusinessCode.SYSTEM_ERROR
    field: Optional[str] = None
    details: Optional[dict] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        """序列化时间戳为 UTC ISO8601，统一使用 Z 结尾"""
        ts = timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        else:
            ts = ts.astimezone(timezone.utc)
        return ts.isoformat().replace("+00:00", "Z")


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
) -> dict[str, Any]:
    """
    创建错误响应体

    Args:
        code: 业务状态码
        message: 错误消息
        error_type: 错误类型
        details: 错误详情
        field: 错误字段
        request_id: 请求ID

    Returns:
        可直接序列化为 JSON 的字典（省略空字段）
    """
    body = ErrorResponse(
        error=message,
        type=error_type,
        code=int(code),
        field=field,
        details=details,
        request_id=request_id,
    )
    return body.model_dump(mode="json", exclude_none=True)
