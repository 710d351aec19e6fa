"""
Trusted relay.

Receives storage intents from untrusted clients, attaches the secret API
key, forwards them to the selected backend, and hands back the backend's
status with only the client-visible result fields. It never raises: every
failure becomes a structured error response.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Type

from pydantic import AliasChoices, BaseModel, ValidationError

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
    StorageOperation,
)
from application.ports.storage import StorageBackendPort
from core.exceptions import business_error_body, exception_status
from core.logging_config import get_logger
from core.response import error_response
from domain.common.exceptions import (
    BackendError,
    BusinessException,
    ConfigurationError,
    InvalidRequest,
    InvalidRouteError,
    TransportError,
    TransportTimeoutError,
)
from shared.codes import BusinessCode

logger = get_logger(__name__)

BackendFactory = Callable[[str, str], StorageBackendPort]


@dataclass
class RelayResponse:
    status_code: int
    # None for statuses that carry no body (204, 304)
    body: Optional[dict[str, Any]]


BODYLESS_STATUSES = frozenset({204, 304})


@dataclass(frozen=True)
class RelayRoute:
    endpoint: str
    request_model: Type[BaseModel]
    response_model: Type[BaseModel]


BACKEND_ROUTES: dict[StorageOperation, RelayRoute] = {
    StorageOperation.INIT: RelayRoute("multipart/init", InitUploadRequest, InitUploadResponse),
    StorageOperation.PART_URL: RelayRoute("multipart/part-url", PartUrlRequest, PartUrlResponse),
    StorageOperation.FINALIZE: RelayRoute("multipart/complete", FinalizeUploadRequest, FinalizeUploadResponse),
    StorageOperation.ABORT: RelayRoute("multipart/abort", AbortUploadRequest, AbortUploadResponse),
    StorageOperation.PREVIEW: RelayRoute("objects/presign-get", PreviewRequest, PreviewResponse),
}

Handler = Callable[[StorageBackendPort, Any], Awaitable[RelayResponse]]


class StorageRelayService:
    """Stateless between requests; configuration is fixed at construction."""

    def __init__(
        self,
        api_key: Optional[str],
        providers: Mapping[str, str],
        backend_factory: BackendFactory,
    ):
        self._api_key = api_key
        self._providers = dict(providers)
        self._backend_factory = backend_factory
        self._handlers: dict[StorageOperation, Handler] = {
            StorageOperation.INIT: self._handle_init,
            StorageOperation.PART_URL: self._handle_part_url,
            StorageOperation.FINALIZE: self._handle_finalize,
            StorageOperation.ABORT: self._handle_abort,
            StorageOperation.PREVIEW: self._handle_preview,
        }

    async def handle(self, provider: Optional[str], payload: Any, request_id: Optional[str] = None) -> RelayResponse:
        operation: Optional[StorageOperation] = None
        try:
            api_key = self._require_api_key()
            base_url = self._resolve_provider(provider)
            operation, request = self._parse(payload)
            backend = self._backend_factory(base_url, api_key)
            try:
                response = await self._handlers[operation](backend, request)
            finally:
                await backend.close()
            logger.info(
                "relay_forwarded",
                provider=provider,
                operation=operation.value,
                status_code=response.status_code,
            )
            return response
        except TransportTimeoutError:
            logger.error("relay_backend_timeout", provider=provider, operation=_op_name(operation))
            return self._error(504, BusinessCode.GATEWAY_TIMEOUT, "Storage backend timed out", "TransportTimeout", request_id)
        except TransportError:
            logger.error("relay_backend_unreachable", provider=provider, operation=_op_name(operation))
            return self._error(502, BusinessCode.NETWORK_ERROR, "Storage backend unavailable", "TransportError", request_id)
        except BackendError as exc:
            logger.warning(
                "relay_backend_error",
                provider=provider,
                operation=_op_name(operation),
                status_code=exc.status_code,
            )
            code = BusinessCode.NOT_FOUND if exc.status_code == 404 else BusinessCode.BACKEND_REJECTED
            return self._error(exc.status_code, code, exc.message, "BackendError", request_id)
        except BusinessException as exc:
            logger.warning(
                "relay_rejected",
                provider=provider,
                error_type=exc.error_type,
                error=exc.message,
            )
            return RelayResponse(exception_status(exc), business_error_body(exc, request_id))
        except Exception:
            logger.exception("relay_unexpected_error", provider=provider, operation=_op_name(operation))
            return self._error(500, BusinessCode.SYSTEM_ERROR, "Internal relay error", "SystemError", request_id)

    def _require_api_key(self) -> str:
        if not self._api_key or not self._api_key.strip():
            raise ConfigurationError()
        return self._api_key

    def _resolve_provider(self, provider: Optional[str]) -> str:
        base_url = self._providers.get(provider or "")
        if not base_url:
            raise InvalidRouteError(provider)
        return base_url

    def _parse(self, payload: Any) -> tuple[StorageOperation, BaseModel]:
        if isinstance(payload, (bytes, bytearray, str)):
            try:
                payload = json.loads(payload or b"null")
            except ValueError as exc:
                raise InvalidRequest("Request body is not valid JSON", field="body") from exc
        if not isinstance(payload, dict):
            raise InvalidRequest("Request body must be a JSON object", field="body")

        raw_operation = payload.get("operation")
        if not raw_operation:
            raise InvalidRequest("Missing operation", field="operation")
        try:
            operation = StorageOperation(raw_operation)
        except ValueError as exc:
            raise InvalidRequest(
                f"Unknown operation: {raw_operation}",
                field="operation",
                details={"allowed": [op.value for op in StorageOperation]},
            ) from exc

        fields = {k: v for k, v in payload.items() if k != "operation"}
        route = BACKEND_ROUTES[operation]
        try:
            return operation, route.request_model.model_validate(fields)
        except ValidationError as exc:
            errors = exc.errors()
            first = errors[0] if errors else {}
            field = ".".join(str(loc) for loc in first.get("loc", ())) or None
            raise InvalidRequest(
                f"Invalid {operation.value} request: {first.get('msg', 'invalid')}",
                field=field,
                code=BusinessCode.PARAM_VALIDATION_ERROR,
            ) from exc

    async def _forward(
        self,
        backend: StorageBackendPort,
        operation: StorageOperation,
        request: BaseModel,
        defaults: Optional[dict[str, Any]] = None,
    ) -> RelayResponse:
        route = BACKEND_ROUTES[operation]
        reply = await backend.forward(route.endpoint, request.model_dump(mode="json", exclude_none=True))
        data = dict(reply.data)
        for name, value in (defaults or {}).items():
            if not _field_spellings(route.response_model, name) & data.keys():
                data[name] = value
        try:
            result = route.response_model.model_validate(data)
        except ValidationError:
            logger.error("relay_malformed_backend_response", operation=operation.value)
            return self._error(
                502, BusinessCode.BACKEND_REJECTED, "Malformed storage backend response", "BackendError", None
            )
        if reply.status_code in BODYLESS_STATUSES:
            return RelayResponse(reply.status_code, None)
        # only declared result fields reach the client
        return RelayResponse(reply.status_code, result.model_dump(mode="json", exclude_none=True))

    async def _handle_init(self, backend: StorageBackendPort, request: InitUploadRequest) -> RelayResponse:
        return await self._forward(backend, StorageOperation.INIT, request)

    async def _handle_part_url(self, backend: StorageBackendPort, request: PartUrlRequest) -> RelayResponse:
        return await self._forward(
            backend, StorageOperation.PART_URL, request, defaults={"part_number": request.part_number}
        )

    async def _handle_finalize(self, backend: StorageBackendPort, request: FinalizeUploadRequest) -> RelayResponse:
        return await self._forward(backend, StorageOperation.FINALIZE, request, defaults={"key": request.key})

    async def _handle_abort(self, backend: StorageBackendPort, request: AbortUploadRequest) -> RelayResponse:
        return await self._forward(backend, StorageOperation.ABORT, request)

    async def _handle_preview(self, backend: StorageBackendPort, request: PreviewRequest) -> RelayResponse:
        return await self._forward(backend, StorageOperation.PREVIEW, request, defaults={"key": request.key})

    @staticmethod
    def _error(status_code: int, code: int, message: str, error_type: str, request_id: Optional[str]) -> RelayResponse:
        return RelayResponse(
            status_code,
            error_response(code=code, message=message, error_type=error_type, request_id=request_id),
        )


def _op_name(operation: Optional[StorageOperation]) -> Optional[str]:
    return operation.value if operation else None


def _field_spellings(model: Type[BaseModel], name: str) -> set[str]:
    """Every key under which ``name`` may arrive in a backend reply."""
    alias = model.model_fields[name].validation_alias
    if isinstance(alias, AliasChoices):
        return {choice for choice in alias.choices if isinstance(choice, str)} | {name}
    return {name}
