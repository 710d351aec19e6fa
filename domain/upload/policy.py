"""Part planning and identifier rules for multipart uploads."""
from __future__ import annotations

import re

from domain.common.exceptions import InvalidRequest
from shared.codes import BusinessCode
from .entity import PartDescriptor

DEFAULT_PART_SIZE = 8 * 1024 * 1024  # 8MiB
MAX_PARTS = 10_000

_BUCKET_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{1,62}$")


def validate_bucket_id(bucket_id: object) -> str:
    if not isinstance(bucket_id, str) or not _BUCKET_ID_RE.match(bucket_id):
        raise InvalidRequest(
            "Invalid bucket id",
            field="bucket_id",
            details={"bucket_id": bucket_id if isinstance(bucket_id, str) else None},
            code=BusinessCode.INVALID_BUCKET,
        )
    return bucket_id


def part_count(total_size: int, part_size: int) -> int:
    return -(-total_size // part_size)


def plan_parts(total_size: int, part_size: int = DEFAULT_PART_SIZE) -> list[PartDescriptor]:
    """Split ``total_size`` bytes into fixed-size parts.

    Every part is ``part_size`` bytes except the last, which carries the
    remainder. Part numbers start at 1.

    Raises:
        InvalidRequest: empty file, non-positive part size, or more than
            ``MAX_PARTS`` parts.
    """
    if part_size <= 0:
        raise InvalidRequest("Part size must be positive", field="part_size")
    if total_size <= 0:
        raise InvalidRequest("Cannot upload an empty file", field="size")

    count = part_count(total_size, part_size)
    if count > MAX_PARTS:
        raise InvalidRequest(
            f"File needs {count} parts, the limit is {MAX_PARTS}",
            field="part_size",
            details={"size": total_size, "part_size": part_size},
        )

    parts = []
    for index in range(count):
        offset = index * part_size
        parts.append(
            PartDescriptor(
                part_number=index + 1,
                offset=offset,
                length=min(part_size, total_size - offset),
            )
        )
    return parts
