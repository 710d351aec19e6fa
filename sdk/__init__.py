"""
Storage relay client SDK

    from sdk import upload, get, UploadOptions

    result = await upload("video.mp4", "media", UploadOptions(on_progress=print))
    preview = await get(result.key)
"""
from api.routes.storage import handle_storage_request
from application.dto import PreviewResult, UploadResult
from application.services.upload_service import UploadOptions
from domain.common.exceptions import (
    BackendError,
    BusinessException,
    ConfigurationError,
    InvalidRequest,
    InvalidRouteError,
    PreviewFailed,
    TransportError,
    TransportTimeoutError,
    UploadFailed,
)
from domain.upload import ProgressSnapshot
from .storage import get, upload

__all__ = [
    "upload",
    "get",
    "handle_storage_request",
    "UploadOptions",
    "UploadResult",
    "PreviewResult",
    "ProgressSnapshot",
    "BusinessException",
    "ConfigurationError",
    "InvalidRequest",
    "InvalidRouteError",
    "UploadFailed",
    "PreviewFailed",
    "TransportError",
    "TransportTimeoutError",
    "BackendError",
]
