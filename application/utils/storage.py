"""Application-level storage helpers to avoid infra coupling."""
from __future__ import annotations

import mimetypes


def guess_content_type(filename: str) -> str:
    ctype, _ = mimetypes.guess_type(filename)
    return ctype or "application/octet-stream"
