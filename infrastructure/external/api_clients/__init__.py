"""
API客户端模块

中继（relay）、存储后端与预签名直传三类 HTTP 客户端
"""
from .base import (
    BaseAPIClient,
    APIResponse,
    APIError,
    APITimeoutError,
    APIConnectionError,
)
from .backend_client import StorageBackendClient, backend_client_factory
from .relay_client import RelayClient
from .transfer_client import PresignedTransferClient
from .errors import to_domain_error

__all__ = [
    "BaseAPIClient",
    "APIResponse",
    "APIError",
    "APITimeoutError",
    "APIConnectionError",
    "StorageBackendClient",
    "backend_client_factory",
    "RelayClient",
    "PresignedTransferClient",
    "to_domain_error",
]
