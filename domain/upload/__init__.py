from .entity import PartDescriptor, PreviewGrant, ProgressSnapshot, UploadSession
from .policy import DEFAULT_PART_SIZE, MAX_PARTS, part_count, plan_parts, validate_bucket_id

__all__ = [
    "PartDescriptor",
    "PreviewGrant",
    "ProgressSnapshot",
    "UploadSession",
    "DEFAULT_PART_SIZE",
    "MAX_PARTS",
    "part_count",
    "plan_parts",
    "validate_bucket_id",
]
