"""Client the relay uses to reach a storage backend with the secret key."""
from __future__ import annotations

from typing import Any, Optional

import httpx

from application.ports.storage import BackendReply
from .base import APIError, BaseAPIClient
from .errors import to_domain_error


class StorageBackendClient(BaseAPIClient):
    """Attaches the configured API key to every backend call."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        auth_header: str = "Authorization",
        auth_scheme: str = "Bearer",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url=base_url, timeout=timeout, max_retries=0, transport=transport)
        self.set_auth_token(api_key, header_name=auth_header, prefix=auth_scheme)

    async def forward(self, endpoint: str, payload: dict[str, Any]) -> BackendReply:
        try:
            response = await self.post(endpoint, json_data=payload)
        except APIError as exc:
            raise to_domain_error(exc) from exc
        try:
            data = response.json()
        except ValueError:
            data = None
        return BackendReply(status_code=response.status_code, data=data if isinstance(data, dict) else {})


def backend_client_factory(
    timeout: float = 30.0,
    auth_header: str = "Authorization",
    auth_scheme: str = "Bearer",
    transport: Optional[httpx.AsyncBaseTransport] = None,
):
    """Build the ``(base_url, api_key) -> client`` callable the relay expects."""

    def _create(base_url: str, api_key: str) -> StorageBackendClient:
        return StorageBackendClient(
            base_url,
            api_key,
            timeout=timeout,
            auth_header=auth_header,
            auth_scheme=auth_scheme,
            transport=transport,
        )

    return _create
