"""
API依赖项 - 中继服务装配
"""
from functools import lru_cache
from typing import Optional

import httpx

from application.services.relay_service import StorageRelayService
from core.config import RelaySettings, settings
from infrastructure.external.api_clients import backend_client_factory


def build_relay_service(
    relay: RelaySettings,
    api_key: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> StorageRelayService:
    """按配置组装中继；``api_key`` 显式传入时覆盖配置中的密钥。"""
    return StorageRelayService(
        api_key=api_key if api_key is not None else relay.api_key_value,
        providers=relay.providers,
        backend_factory=backend_client_factory(
            timeout=relay.timeout,
            auth_header=relay.auth_header,
            auth_scheme=relay.auth_scheme,
            transport=transport,
        ),
    )


@lru_cache
def get_relay_service() -> StorageRelayService:
    """应用内单例：配置只在启动后首次请求时读取。"""
    return build_relay_service(settings.relay)
