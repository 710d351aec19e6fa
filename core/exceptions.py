"""
业务码到 HTTP 状态码的映射与全局异常处理器
"""
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.responses import JSONResponse
import uuid
from starlette import status as http_status

from .response import error_response
from shared.codes import BusinessCode
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException, BackendError

logger = get_logger(__name__)

_CODE_TO_STATUS = {
    BusinessCode.PARAM_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.PARAM_MISSING: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.PARAM_TYPE_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.PARAM_VALIDATION_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.INVALID_BUCKET: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.INVALID_ROUTE: http_status.HTTP_404_NOT_FOUND,

    BusinessCode.NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.UPLOAD_FAILED: http_status.HTTP_502_BAD_GATEWAY,
    BusinessCode.PREVIEW_FAILED: http_status.HTTP_502_BAD_GATEWAY,
    BusinessCode.BACKEND_REJECTED: http_status.HTTP_502_BAD_GATEWAY,

    BusinessCode.SYSTEM_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.CONFIGURATION_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.NETWORK_ERROR: http_status.HTTP_502_BAD_GATEWAY,
    BusinessCode.SERVICE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    BusinessCode.GATEWAY_TIMEOUT: http_status.HTTP_504_GATEWAY_TIMEOUT,
}


def business_code_to_http_status(code: int) -> int:
    """根据业务码映射HTTP状态码（默认400）。"""
    try:
        return _CODE_TO_STATUS.get(BusinessCode(code), http_status.HTTP_400_BAD_REQUEST)
    except ValueError:
        return http_status.HTTP_400_BAD_REQUEST


def exception_status(exc: BusinessException) -> int:
    if isinstance(exc, BackendError):
        return exc.status_code
    return business_code_to_http_status(exc.code)


def business_error_body(exc: BusinessException, request_id: Optional[str] = None) -> dict:
    return error_response(
        code=exc.code,
        message=exc.message,
        error_type=exc.error_type,
        details=exc.details,
        field=exc.field,
        request_id=request_id,
    )


def _request_id(request: Request) -> str:
    return getattr(getattr(request, "state", object()), "request_id", None) or str(uuid.uuid4())


def register_exception_handlers(app: FastAPI):
    """
    注册全局异常处理器

    Args:
        app: FastAPI应用实例
    """

    @app.exception_handler(BusinessException)
    async def business_exception_handler(request: Request, exc: BusinessException):
        """处理业务异常"""
        return JSONResponse(
            status_code=exception_status(exc),
            content=business_error_body(exc, _request_id(request)),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """处理参数验证异常"""
        errors = exc.errors()
        first_error = errors[0] if errors else {}
        field = ".".join(str(loc) for loc in first_error.get("loc", [])[1:])
        content = error_response(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=f"Invalid request: {first_error.get('msg', 'unknown')}",
            error_type="InvalidRequest",
            field=field or None,
            request_id=_request_id(request),
        )
        return JSONResponse(status_code=http_status.HTTP_400_BAD_REQUEST, content=content)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """处理HTTP异常（含未匹配路由的 404）"""
        code_mapping = {
            404: BusinessCode.INVALID_ROUTE,
            405: BusinessCode.INVALID_ROUTE,
            503: BusinessCode.SERVICE_UNAVAILABLE,
        }
        code = code_mapping.get(exc.status_code, BusinessCode.SYSTEM_ERROR)
        message = "Missing or invalid storage route" if code == BusinessCode.INVALID_ROUTE else str(exc.detail)
        content = error_response(
            code=code,
            message=message,
            error_type="HTTPError",
            details={"status_code": exc.status_code},
            request_id=_request_id(request),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """处理所有未捕获的异常"""
        request_id = _request_id(request)
        logger.error(
            "unhandled_exception",
            request_id=request_id,
            error=str(exc),
            exc_info=True,
        )
        content = error_response(
            code=BusinessCode.SYSTEM_ERROR,
            message="Internal server error",
            error_type="SystemError",
            request_id=request_id,
        )
        return JSONResponse(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
        )
