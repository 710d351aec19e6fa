"""Domain entities for a multipart upload session and its preview grant."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from domain.common.exceptions import InvalidRequest

_SESSION_STATES = {"active", "finalized", "aborted"}


@dataclass(frozen=True)
class ProgressSnapshot:
    """Bytes confirmed uploaded so far."""

    loaded: int
    total: int
    percent: int

    @classmethod
    def of(cls, loaded: int, total: int) -> "ProgressSnapshot":
        loaded = max(0, min(loaded, total))
        percent = 100 if total <= 0 else loaded * 100 // total
        return cls(loaded=loaded, total=total, percent=max(0, min(percent, 100)))


@dataclass
class PartDescriptor:
    part_number: int
    offset: int
    length: int
    url: Optional[str] = None
    etag: Optional[str] = None

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def is_uploaded(self) -> bool:
        return self.etag is not None


@dataclass
class UploadSession:
    """Aggregate tracking one multipart upload from init to finalize/abort."""

    upload_id: str
    key: str
    bucket_id: str
    total_size: int
    content_type: str
    parts: list[PartDescriptor] = field(default_factory=list)
    loaded: int = 0
    state: str = "active"

    def __post_init__(self) -> None:
        if self.state not in _SESSION_STATES:
            raise InvalidRequest(
                f"Invalid session state: {self.state}",
                field="state",
                details={"allowed": sorted(_SESSION_STATES)},
            )
        numbers = [p.part_number for p in self.parts]
        if numbers != list(range(1, len(numbers) + 1)):
            raise InvalidRequest("Part numbers must be contiguous from 1", field="parts")
        if sum(p.length for p in self.parts) != self.total_size:
            raise InvalidRequest("Part lengths must add up to the file size", field="parts")

    @property
    def is_active(self) -> bool:
        return self.state == "active"

    @property
    def is_complete(self) -> bool:
        return bool(self.parts) and all(p.is_uploaded for p in self.parts)

    def ensure_active(self) -> None:
        if not self.is_active:
            raise InvalidRequest(
                f"Upload session {self.upload_id} is {self.state}",
                field="upload_id",
            )

    def part(self, part_number: int) -> PartDescriptor:
        if not 1 <= part_number <= len(self.parts):
            raise InvalidRequest(f"Unknown part number {part_number}", field="part_number")
        return self.parts[part_number - 1]

    def assign_url(self, part_number: int, url: str) -> PartDescriptor:
        self.ensure_active()
        part = self.part(part_number)
        part.url = url
        return part

    def record_part(self, part_number: int, etag: str) -> ProgressSnapshot:
        """Mark a part as uploaded and return the new progress snapshot."""
        self.ensure_active()
        part = self.part(part_number)
        if part.is_uploaded:
            raise InvalidRequest(f"Part {part_number} already recorded", field="part_number")
        part.etag = etag
        # single-use: the URL is spent once the PUT succeeded
        part.url = None
        self.loaded += part.length
        return self.progress()

    def progress(self) -> ProgressSnapshot:
        return ProgressSnapshot.of(self.loaded, self.total_size)

    def completed_parts(self) -> list[PartDescriptor]:
        return sorted((p for p in self.parts if p.is_uploaded), key=lambda p: p.part_number)

    def mark_finalized(self) -> None:
        if not self.is_complete:
            raise InvalidRequest("Cannot finalize before every part is uploaded", field="parts")
        self.ensure_active()
        self.state = "finalized"
        self._revoke_urls()

    def mark_aborted(self) -> None:
        if self.state == "finalized":
            return
        self.state = "aborted"
        self._revoke_urls()

    def _revoke_urls(self) -> None:
        for part in self.parts:
            part.url = None


@dataclass(frozen=True)
class PreviewGrant:
    key: str
    url: str
    expires_at: int
