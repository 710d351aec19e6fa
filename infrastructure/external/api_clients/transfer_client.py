"""Direct byte transfer to presigned storage URLs."""
from __future__ import annotations

from typing import Optional

import httpx

from domain.common.exceptions import BackendError
from .base import APIError, BaseAPIClient, redact_url
from .errors import to_domain_error


class PresignedTransferClient(BaseAPIClient):
    """PUTs part bodies to presigned URLs; sends no credentials."""

    def __init__(self, timeout: float = 60.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(
            base_url="",
            timeout=timeout,
            max_retries=0,
            headers={"Content-Type": "application/octet-stream", "Accept": "*/*"},
            transport=transport,
        )

    async def put_part(self, url: str, data: bytes) -> str:
        try:
            response = await self.put(url, content=data)
        except APIError as exc:
            raise to_domain_error(exc) from exc
        etag = response.header("etag")
        if not etag:
            raise BackendError(
                f"Storage endpoint returned no ETag for {redact_url(url)}",
                status_code=response.status_code,
            )
        return etag
