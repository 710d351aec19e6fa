"""
Wire DTOs for the presigned-URL exchange.

Request models describe what the client sends to the relay (and the relay
forwards to the backend). Result models list the fields a client may see;
anything else the backend returns is dropped on validation.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from domain.upload.policy import MAX_PARTS


class StorageOperation(str, Enum):
    """Operations a relay request can carry."""
    INIT = "init"
    PART_URL = "part-url"
    FINALIZE = "finalize"
    ABORT = "abort"
    PREVIEW = "preview"


class RelayModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ---- requests ----

class InitUploadRequest(RelayModel):
    bucket_id: str = Field(..., pattern=r"^[A-Za-z0-9][A-Za-z0-9._-]{1,62}$")
    size: int = Field(..., gt=0)
    content_type: str = Field(default="application/octet-stream", min_length=1)
    filename: Optional[str] = None


class PartUrlRequest(RelayModel):
    upload_id: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    part_number: int = Field(..., ge=1, le=MAX_PARTS)


class CompletedPartDTO(RelayModel):
    part_number: int = Field(
        ..., ge=1, le=MAX_PARTS, validation_alias=AliasChoices("part_number", "partNumber")
    )
    etag: str = Field(..., min_length=1, validation_alias=AliasChoices("etag", "ETag"))


class FinalizeUploadRequest(RelayModel):
    upload_id: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    parts: list[CompletedPartDTO] = Field(..., min_length=1)

    @field_validator("parts")
    @classmethod
    def _parts_ascending(cls, parts: list[CompletedPartDTO]) -> list[CompletedPartDTO]:
        numbers = [p.part_number for p in parts]
        if numbers != list(range(1, len(numbers) + 1)):
            raise ValueError("parts must be sorted by part_number and contiguous from 1")
        return parts


class AbortUploadRequest(RelayModel):
    upload_id: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)


class PreviewRequest(RelayModel):
    key: str = Field(..., min_length=1)


# ---- results ----

class InitUploadResponse(RelayModel):
    upload_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("upload_id", "uploadId")
    )
    key: str = Field(..., min_length=1)


class PartUrlResponse(RelayModel):
    part_number: int = Field(..., validation_alias=AliasChoices("part_number", "partNumber"))
    url: str = Field(..., min_length=1)
    expires_at: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("expires_at", "expiresAt")
    )


class FinalizeUploadResponse(RelayModel):
    key: str = Field(..., min_length=1)


class AbortUploadResponse(RelayModel):
    aborted: bool = True


class PreviewResponse(RelayModel):
    key: Optional[str] = None
    url: str = Field(..., min_length=1)
    expires_at: int = Field(..., validation_alias=AliasChoices("expires_at", "expiresAt"))


# ---- public client results ----

class UploadResult(BaseModel):
    key: str


class PreviewResult(BaseModel):
    url: str
    expires_at: int
