"""
Shared business codes used across layers (Domain/Core/API).

Relay error bodies and client-side exceptions carry one of these codes so
both ends of the presigned-URL exchange agree on the failure class.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """Unified business status codes (single source of truth)."""

    # Success
    SUCCESS = 0

    # Parameter errors (1xxxx)
    PARAM_ERROR = 10000
    PARAM_MISSING = 10001
    PARAM_TYPE_ERROR = 10002
    PARAM_VALIDATION_ERROR = 10003
    INVALID_ROUTE = 10004
    INVALID_BUCKET = 10005

    # Storage errors (2xxxx)
    BUSINESS_ERROR = 20000
    NOT_FOUND = 20006  # Generic resource not found
    UPLOAD_FAILED = 20010
    PREVIEW_FAILED = 20011
    BACKEND_REJECTED = 20012

    # System errors (4xxxx)
    SYSTEM_ERROR = 40000
    NETWORK_ERROR = 40002
    SERVICE_UNAVAILABLE = 40003
    CONFIGURATION_ERROR = 40004
    GATEWAY_TIMEOUT = 40005


__all__ = ["BusinessCode"]
