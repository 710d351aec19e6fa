"""Byte-addressable upload sources: in-memory bytes, paths, file objects."""
from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any, BinaryIO, Optional

import aiofiles
import anyio

from application.utils.storage import guess_content_type
from domain.common.exceptions import InvalidRequest


class BytesSource:
    def __init__(self, data: bytes, content_type: Optional[str] = None, filename: Optional[str] = None):
        self._data = memoryview(data)
        self.size = len(self._data)
        self.filename = filename
        self.content_type = content_type or guess_content_type(filename or "")

    async def read_range(self, offset: int, length: int) -> bytes:
        return bytes(self._data[offset:offset + length])


class PathSource:
    """Reads ranges straight from disk; each read opens its own handle."""

    def __init__(self, path: str | os.PathLike, content_type: Optional[str] = None, filename: Optional[str] = None):
        self.path = Path(path)
        if not self.path.is_file():
            raise InvalidRequest(f"Not a file: {self.path}", field="file")
        self.size = self.path.stat().st_size
        self.filename = filename or self.path.name
        self.content_type = content_type or guess_content_type(self.filename)

    async def read_range(self, offset: int, length: int) -> bytes:
        async with aiofiles.open(self.path, "rb") as f:
            await f.seek(offset)
            return await f.read(length)


class FileObjectSource:
    """Seekable binary file object; seek+read pairs are serialized."""

    def __init__(self, fileobj: BinaryIO, content_type: Optional[str] = None, filename: Optional[str] = None):
        self._fileobj = fileobj
        self._lock = asyncio.Lock()
        start = fileobj.tell()
        fileobj.seek(0, os.SEEK_END)
        self.size = fileobj.tell() - start
        fileobj.seek(start)
        self._start = start
        name = filename or getattr(fileobj, "name", None)
        self.filename = os.path.basename(name) if isinstance(name, str) else None
        self.content_type = content_type or guess_content_type(self.filename or "")

    def _read_sync(self, offset: int, length: int) -> bytes:
        self._fileobj.seek(self._start + offset)
        return self._fileobj.read(length)

    async def read_range(self, offset: int, length: int) -> bytes:
        async with self._lock:
            return await anyio.to_thread.run_sync(self._read_sync, offset, length)


def open_source(file: Any, content_type: Optional[str] = None, filename: Optional[str] = None):
    """Wrap ``file`` in the matching upload source."""
    if isinstance(file, (bytes, bytearray, memoryview)):
        return BytesSource(bytes(file), content_type=content_type, filename=filename)
    if isinstance(file, (str, os.PathLike)):
        return PathSource(file, content_type=content_type, filename=filename)
    if hasattr(file, "read") and hasattr(file, "seek") and hasattr(file, "tell"):
        return FileObjectSource(file, content_type=content_type, filename=filename)
    raise InvalidRequest(
        "Unsupported file type; pass bytes, a path or a seekable binary file",
        field="file",
        details={"type": type(file).__name__},
    )
