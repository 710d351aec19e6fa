"""Client for the trusted relay endpoint (``POST {relay_url}/{provider}``)."""
from __future__ import annotations

from typing import Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from application.dto import (
    AbortUploadRequest,
    AbortUploadResponse,
    FinalizeUploadRequest,
    FinalizeUploadResponse,
    InitUploadRequest,
    InitUploadResponse,
    PartUrlRequest,
    PartUrlResponse,
    PreviewRequest,
    PreviewResponse,
    StorageOperation,
)
from domain.common.exceptions import BackendError
from .base import APIError, BaseAPIClient
from .errors import to_domain_error

T = TypeVar("T", bound=BaseModel)


class RelayClient(BaseAPIClient):
    """Speaks the relay protocol. Carries no credential of its own."""

    def __init__(
        self,
        relay_url: str,
        provider: str = "default",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url=relay_url, timeout=timeout, max_retries=0, transport=transport)
        self.provider = provider

    async def _call(self, operation: StorageOperation, payload: BaseModel, result_model: Type[T]) -> T:
        body = {"operation": operation.value, **payload.model_dump(mode="json", exclude_none=True)}
        try:
            response = await self.post(self.provider, json_data=body)
        except APIError as exc:
            raise to_domain_error(exc) from exc
        try:
            return result_model.model_validate(response.json())
        except (ValidationError, ValueError) as exc:
            raise BackendError(
                f"Malformed relay response for {operation.value}",
                status_code=response.status_code,
            ) from exc

    async def init_upload(self, request: InitUploadRequest) -> InitUploadResponse:
        return await self._call(StorageOperation.INIT, request, InitUploadResponse)

    async def part_url(self, request: PartUrlRequest) -> PartUrlResponse:
        return await self._call(StorageOperation.PART_URL, request, PartUrlResponse)

    async def finalize_upload(self, request: FinalizeUploadRequest) -> FinalizeUploadResponse:
        return await self._call(StorageOperation.FINALIZE, request, FinalizeUploadResponse)

    async def abort_upload(self, request: AbortUploadRequest) -> AbortUploadResponse:
        return await self._call(StorageOperation.ABORT, request, AbortUploadResponse)

    async def preview(self, request: PreviewRequest) -> PreviewResponse:
        return await self._call(StorageOperation.PREVIEW, request, PreviewResponse)
