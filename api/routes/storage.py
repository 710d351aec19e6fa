"""存储中继路由：``POST /storage/{provider}``。"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.dependencies import build_relay_service, get_relay_service
from application.services.relay_service import StorageRelayService
from core.config import settings


router = APIRouter(
    prefix="/storage",
    tags=["Storage"],
)


async def _relay_request(request: Request, provider: Optional[str], relay: StorageRelayService) -> Response:
    body = await request.body()
    request_id = getattr(request.state, "request_id", None)
    result = await relay.handle(provider, body, request_id=request_id)
    if result.body is None:
        # 204/304 must go out without a body
        return Response(status_code=result.status_code)
    return JSONResponse(status_code=result.status_code, content=result.body)


async def handle_storage_request(
    request: Request,
    provider: Optional[str],
    api_key: Optional[str],
    *,
    relay: Optional[StorageRelayService] = None,
) -> Response:
    """
    在其他 ASGI 应用中嵌入中继

    Args:
        request: 传入的 Starlette/FastAPI 请求，请求体为 JSON 操作
        provider: 路径中的存储提供方名称
        api_key: 服务端密钥；为空时返回 ConfigurationError
        relay: 可选，自定义中继实例（测试用）

    Returns:
        后端状态码与结果字段，或结构化错误体
    """
    if relay is None:
        relay = build_relay_service(settings.relay, api_key=api_key or "")
    return await _relay_request(request, provider, relay)


@router.post(
    "/{provider}",
    summary="转发存储操作",
    responses={
        400: {"description": "Invalid request"},
        404: {"description": "Missing or invalid storage route"},
        500: {"description": "Relay misconfigured"},
        502: {"description": "Storage backend unavailable"},
        504: {"description": "Storage backend timed out"},
    },
)
async def relay_storage_operation(
    provider: str,
    request: Request,
    relay: StorageRelayService = Depends(get_relay_service),
) -> Response:
    return await _relay_request(request, provider, relay)
