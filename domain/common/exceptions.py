"""领域层业务异常定义，供领域、应用与基础设施使用。

核心（core）层仅负责 HTTP 映射与异常处理，领域层不反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class ConfigurationError(BusinessException):
    """The relay has no usable secret credential."""

    def __init__(self, message: str = "Storage API key is not configured"):
        super().__init__(
            code=BusinessCode.CONFIGURATION_ERROR,
            message=message,
            error_type="ConfigurationError",
        )


class InvalidRequest(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
        code: int = BusinessCode.PARAM_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            error_type="InvalidRequest",
            details=details,
            field=field,
        )


class InvalidRouteError(InvalidRequest):
    def __init__(self, provider: Optional[str]):
        super().__init__(
            "Missing or invalid storage route",
            field="provider",
            details={"provider": provider} if provider else None,
            code=BusinessCode.INVALID_ROUTE,
        )


class TransportError(BusinessException):
    """Network-level failure, distinct from an application rejection."""

    def __init__(self, message: str = "Transport failure", *, details: dict | None = None):
        super().__init__(
            code=BusinessCode.NETWORK_ERROR,
            message=message,
            error_type="TransportError",
            details=details,
        )


class TransportTimeoutError(TransportError):
    def __init__(self, message: str = "Request timed out", *, details: dict | None = None):
        super().__init__(message, details=details)
        self.code = BusinessCode.GATEWAY_TIMEOUT
        self.error_type = "TransportTimeout"


class BackendError(BusinessException):
    """The relay or storage endpoint answered with an error status."""

    def __init__(self, message: str, *, status_code: int, details: dict | None = None):
        self.status_code = status_code
        super().__init__(
            code=BusinessCode.BACKEND_REJECTED,
            message=message,
            error_type="BackendError",
            details={"status_code": status_code, **(details or {})},
        )


class UploadFailed(BusinessException):
    def __init__(
        self,
        message: str = "Upload failed",
        *,
        cause: Optional[BaseException] = None,
        upload_id: Optional[str] = None,
        part_number: Optional[int] = None,
    ):
        self.cause = cause
        details: dict = {}
        if upload_id is not None:
            details["upload_id"] = upload_id
        if part_number is not None:
            details["part_number"] = part_number
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(
            code=BusinessCode.UPLOAD_FAILED,
            message=message,
            error_type="UploadFailed",
            details=details or None,
        )


class PreviewFailed(BusinessException):
    def __init__(self, key: str, *, cause: Optional[BaseException] = None):
        self.key = key
        self.cause = cause
        details = {"key": key}
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(
            code=BusinessCode.PREVIEW_FAILED,
            message=f"Preview failed for key {key!r}",
            error_type="PreviewFailed",
            details=details,
        )
