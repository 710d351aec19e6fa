"""Application-owned storage port abstractions (hexagonal architecture).

The coordinator and resolver only know these protocols; the httpx clients
in ``infrastructure.external.api_clients`` implement them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

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
)


@runtime_checkable
class RelayPort(Protocol):
    """Client-side view of the trusted relay."""

    async def init_upload(self, request: InitUploadRequest) -> InitUploadResponse: ...

    async def part_url(self, request: PartUrlRequest) -> PartUrlResponse: ...

    async def finalize_upload(self, request: FinalizeUploadRequest) -> FinalizeUploadResponse: ...

    async def abort_upload(self, request: AbortUploadRequest) -> AbortUploadResponse: ...

    async def preview(self, request: PreviewRequest) -> PreviewResponse: ...

    async def close(self) -> None: ...


@dataclass
class BackendReply:
    status_code: int
    data: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class StorageBackendPort(Protocol):
    """Relay-side view of a storage backend; the API key is already attached."""

    async def forward(self, endpoint: str, payload: dict[str, Any]) -> BackendReply: ...

    async def close(self) -> None: ...


@runtime_checkable
class PartTransferPort(Protocol):
    async def put_part(self, url: str, data: bytes) -> str:
        """PUT ``data`` to a presigned URL and return the ETag."""
        ...


@runtime_checkable
class UploadSource(Protocol):
    """A byte-addressable file to upload."""

    size: int
    content_type: str
    filename: Optional[str]

    async def read_range(self, offset: int, length: int) -> bytes: ...
