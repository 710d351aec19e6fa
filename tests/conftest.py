"""Pytest bootstrap configuration.

Pin the settings that matter before any module reads ``core.config``, and
provide in-memory fakes for the relay and the presigned storage endpoint.
"""
import asyncio
import hashlib
import json
import os
from typing import Optional
from urllib.parse import urlsplit

import httpx
import pytest

os.environ.setdefault("DEBUG", "false")

from application.dto import (  # noqa: E402
    AbortUploadResponse,
    FinalizeUploadResponse,
    InitUploadResponse,
    PartUrlResponse,
    PreviewResponse,
)
from domain.common.exceptions import BackendError  # noqa: E402


class FakeRelay:
    """RelayPort double that records every call."""

    def __init__(self, previews: Optional[dict] = None):
        self.inits = []
        self.part_requests = []
        self.finalized = []
        self.aborted = []
        self.closed = 0
        self.previews = previews or {}
        self.fail_part_url_for: set[int] = set()
        self.fail_init: Optional[Exception] = None
        self.fail_finalize: Optional[Exception] = None

    async def init_upload(self, request):
        self.inits.append(request)
        if self.fail_init is not None:
            raise self.fail_init
        return InitUploadResponse(upload_id="up-1", key=f"{request.bucket_id}/object")

    async def part_url(self, request):
        self.part_requests.append(request)
        if request.part_number in self.fail_part_url_for:
            raise BackendError("Access denied", status_code=403)
        attempt = sum(1 for r in self.part_requests if r.part_number == request.part_number)
        return PartUrlResponse(
            part_number=request.part_number,
            url=f"https://storage.test/{request.upload_id}/{request.part_number}?attempt={attempt}",
        )

    async def finalize_upload(self, request):
        self.finalized.append(request)
        if self.fail_finalize is not None:
            raise self.fail_finalize
        return FinalizeUploadResponse(key=request.key)

    async def abort_upload(self, request):
        self.aborted.append(request)
        return AbortUploadResponse()

    async def preview(self, request):
        if request.key not in self.previews:
            raise BackendError("NoSuchKey", status_code=404)
        url, expires_at = self.previews[request.key]
        return PreviewResponse(key=request.key, url=url, expires_at=expires_at)

    async def close(self):
        self.closed += 1


class FakeTransfer:
    """PartTransferPort double keyed by the part number in the URL path."""

    def __init__(self, delays: Optional[dict] = None):
        self.delays = delays or {}
        self.received: dict[int, bytes] = {}
        self.urls: list[str] = []
        self.failures: dict[int, list[Exception]] = {}
        self.started = asyncio.Event()
        self.gate: Optional[asyncio.Event] = None

    async def put_part(self, url, data):
        self.urls.append(url)
        part_number = int(urlsplit(url).path.rsplit("/", 1)[-1])
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        delay = self.delays.get(part_number)
        if delay:
            await asyncio.sleep(delay)
        pending = self.failures.get(part_number)
        if pending:
            raise pending.pop(0)
        self.received[part_number] = data
        return f'"etag-{part_number}"'


@pytest.fixture
def fake_relay():
    return FakeRelay()


@pytest.fixture
def fake_transfer():
    return FakeTransfer()


@pytest.fixture
def transfer_cls():
    return FakeTransfer


class FakeObjectStore:
    """An S3-like backend (relay side) plus its presigned endpoint (client side)."""

    API_KEY = "secret-key"

    def __init__(self):
        self.uploads: dict[str, dict] = {}
        self.objects: dict[str, bytes] = {}
        self.aborted: list[str] = []
        self.fail_part: Optional[int] = None
        self._next_id = 0

    def backend(self, request):
        if request.headers.get("authorization") != f"Bearer {self.API_KEY}":
            return httpx.Response(401, json={"error": "Unauthorized"})
        body = json.loads(request.content)
        path = request.url.path
        if path.endswith("/multipart/init"):
            self._next_id += 1
            upload_id = f"u{self._next_id}"
            key = f"{body['bucket_id']}/{body.get('filename') or 'blob'}"
            self.uploads[upload_id] = {"key": key, "parts": {}}
            return httpx.Response(200, json={"uploadId": upload_id, "key": key, "bucketArn": "internal"})
        if path.endswith("/multipart/part-url"):
            url = (
                f"http://s3.test/{body['key']}?uploadId={body['upload_id']}"
                f"&partNumber={body['part_number']}&X-Sig=put"
            )
            return httpx.Response(200, json={"partNumber": body["part_number"], "url": url, "expiresAt": 1_900_000_000})
        if path.endswith("/multipart/complete"):
            upload = self.uploads.pop(body["upload_id"])
            for part in body["parts"]:
                data = upload["parts"][part["part_number"]]
                if part["etag"] != _etag(data):
                    return httpx.Response(400, json={"error": "InvalidPart"})
            self.objects[upload["key"]] = b"".join(upload["parts"][p["part_number"]] for p in body["parts"])
            return httpx.Response(200, json={"key": upload["key"]})
        if path.endswith("/multipart/abort"):
            self.aborted.append(body["upload_id"])
            self.uploads.pop(body["upload_id"], None)
            return httpx.Response(200, json={"aborted": True})
        if path.endswith("/objects/presign-get"):
            if body["key"] not in self.objects:
                return httpx.Response(404, json={"error": "NoSuchKey"})
            return httpx.Response(
                200, json={"url": f"http://s3.test/{body['key']}?X-Sig=get", "expiresAt": 1_900_000_000}
            )
        return httpx.Response(404, json={"error": "NoSuchRoute"})

    def storage(self, request):
        upload_id = request.url.params["uploadId"]
        part_number = int(request.url.params["partNumber"])
        if part_number == self.fail_part:
            return httpx.Response(500, text="InternalError")
        self.uploads[upload_id]["parts"][part_number] = request.content
        return httpx.Response(200, headers={"ETag": _etag(request.content)})


def _etag(data: bytes) -> str:
    return f'"{hashlib.md5(data).hexdigest()}"'


@pytest.fixture
def object_store():
    return FakeObjectStore()
