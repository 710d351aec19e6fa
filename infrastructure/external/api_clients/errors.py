"""Translate httpx-level client errors into domain exceptions."""
from __future__ import annotations

from domain.common.exceptions import (
    BackendError,
    BusinessException,
    TransportError,
    TransportTimeoutError,
)
from .base import APIConnectionError, APIError, APITimeoutError


def to_domain_error(exc: APIError) -> BusinessException:
    if isinstance(exc, APITimeoutError):
        return TransportTimeoutError(exc.message)
    if isinstance(exc, APIConnectionError):
        return TransportError(exc.message)
    if exc.status_code is None:
        return TransportError(exc.message)
    details = None
    if exc.response is not None and isinstance(exc.response.data, dict):
        error_type = exc.response.data.get("type")
        if isinstance(error_type, str):
            details = {"type": error_type}
    return BackendError(exc.message, status_code=exc.status_code, details=details)
