"""Upload sources handed to the multipart coordinator."""
from .sources import BytesSource, FileObjectSource, PathSource, open_source

__all__ = [
    "BytesSource",
    "FileObjectSource",
    "PathSource",
    "open_source",
]
