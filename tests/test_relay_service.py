import json

import httpx
import pytest

from application.services.relay_service import StorageRelayService
from infrastructure.external.api_clients import backend_client_factory
from shared.codes import BusinessCode

PROVIDERS = {"default": "http://backend.test/v1", "archive": "http://archive.test/v2"}


class Backend:
    """MockTransport handler recording what the relay forwarded."""

    def __init__(self, responder=None):
        self.calls = []
        self.responder = responder or (lambda request: httpx.Response(200, json={}))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        return self.responder(request)

    @property
    def last_body(self):
        return json.loads(self.calls[-1].content)


def _relay(backend, api_key="secret-key", **factory_kwargs):
    return StorageRelayService(
        api_key=api_key,
        providers=PROVIDERS,
        backend_factory=backend_client_factory(transport=httpx.MockTransport(backend), **factory_kwargs),
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("api_key", [None, "", "   "])
async def test_missing_api_key_is_a_configuration_error(api_key):
    backend = Backend()

    response = await _relay(backend, api_key=api_key).handle("default", {"operation": "preview", "key": "k"})

    assert response.status_code == 500
    assert response.body["type"] == "ConfigurationError"
    assert response.body["code"] == BusinessCode.CONFIGURATION_ERROR
    assert backend.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("provider", [None, "", "unknown"])
async def test_unknown_provider_is_an_invalid_route(provider):
    backend = Backend()

    response = await _relay(backend).handle(provider, {"operation": "preview", "key": "k"})

    assert response.status_code == 404
    assert response.body["error"] == "Missing or invalid storage route"
    assert response.body["code"] == BusinessCode.INVALID_ROUTE
    assert backend.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload,field",
    [
        (b"{not json", "body"),
        (b"[1, 2]", "body"),
        ({"key": "k"}, "operation"),
        ({"operation": "delete", "key": "k"}, "operation"),
        ({"operation": "init", "bucket_id": "media"}, "size"),
        ({"operation": "init", "bucket_id": "-bad-", "size": 3}, "bucket_id"),
        ({"operation": "finalize", "upload_id": "u", "key": "k",
          "parts": [{"part_number": 2, "etag": "b"}, {"part_number": 1, "etag": "a"}]}, "parts"),
    ],
)
async def test_malformed_requests_are_rejected(payload, field):
    backend = Backend()

    response = await _relay(backend).handle("default", payload, request_id="req-1")

    assert response.status_code == 400
    assert response.body["type"] == "InvalidRequest"
    assert response.body["field"] == field
    assert response.body["request_id"] == "req-1"
    assert backend.calls == []


@pytest.mark.asyncio
async def test_init_is_forwarded_with_credential_and_filtered():
    backend = Backend(lambda r: httpx.Response(
        201, json={"uploadId": "u-1", "key": "media/obj", "internalPath": "/disk/7"}
    ))

    response = await _relay(backend).handle(
        "default",
        json.dumps({"operation": "init", "bucket_id": "media", "size": 10, "filename": "a.txt"}).encode(),
    )

    assert response.status_code == 201
    assert response.body == {"upload_id": "u-1", "key": "media/obj"}
    request = backend.calls[0]
    assert str(request.url) == "http://backend.test/v1/multipart/init"
    assert request.method == "POST"
    assert request.headers["authorization"] == "Bearer secret-key"
    assert backend.last_body == {
        "bucket_id": "media",
        "size": 10,
        "content_type": "application/octet-stream",
        "filename": "a.txt",
    }


@pytest.mark.asyncio
async def test_custom_auth_header_and_provider_routing():
    backend = Backend(lambda r: httpx.Response(200, json={"url": "https://s.test/1", "expiresAt": 99}))
    relay = _relay(backend, auth_header="X-Api-Key", auth_scheme="")

    response = await relay.handle(
        "archive", {"operation": "part-url", "upload_id": "u", "key": "k", "part_number": 3}
    )

    assert response.status_code == 200
    assert response.body == {"part_number": 3, "url": "https://s.test/1", "expires_at": 99}
    request = backend.calls[0]
    assert str(request.url) == "http://archive.test/v2/multipart/part-url"
    assert request.headers["x-api-key"] == "secret-key"
    assert "authorization" not in request.headers


@pytest.mark.asyncio
async def test_each_operation_hits_its_endpoint():
    replies = {
        "/v1/multipart/complete": {"key": "media/obj", "location": "internal"},
        "/v1/multipart/abort": {},
        "/v1/objects/presign-get": {"url": "https://s.test/obj?sig", "expires_at": 1700000000},
    }
    backend = Backend(lambda r: httpx.Response(200, json=replies[r.url.path]))
    relay = _relay(backend)

    finalize = await relay.handle("default", {
        "operation": "finalize", "upload_id": "u", "key": "media/obj",
        "parts": [{"partNumber": 1, "ETag": '"a"'}, {"part_number": 2, "etag": '"b"'}],
    })
    abort = await relay.handle("default", {"operation": "abort", "upload_id": "u", "key": "media/obj"})
    preview = await relay.handle("default", {"operation": "preview", "key": "media/obj"})

    assert finalize.body == {"key": "media/obj"}
    assert json.loads(backend.calls[0].content)["parts"] == [
        {"part_number": 1, "etag": '"a"'},
        {"part_number": 2, "etag": '"b"'},
    ]
    assert abort.body == {"aborted": True}
    assert preview.body == {"key": "media/obj", "url": "https://s.test/obj?sig", "expires_at": 1700000000}


@pytest.mark.asyncio
async def test_backend_rejection_passes_through_status_and_message():
    backend = Backend(lambda r: httpx.Response(404, json={"error": "NoSuchKey"}))

    response = await _relay(backend).handle("default", {"operation": "preview", "key": "nope"})

    assert response.status_code == 404
    assert response.body["error"] == "NoSuchKey"
    assert response.body["code"] == BusinessCode.NOT_FOUND


@pytest.mark.asyncio
async def test_backend_server_error_passes_through():
    backend = Backend(lambda r: httpx.Response(503, json={"message": "SlowDown"}))

    response = await _relay(backend).handle("default", {"operation": "preview", "key": "k"})

    assert response.status_code == 503
    assert response.body["error"] == "SlowDown"
    assert len(backend.calls) == 1


@pytest.mark.asyncio
async def test_transport_failure_is_502():
    def refused(request):
        raise httpx.ConnectError("connection refused", request=request)

    response = await _relay(Backend(refused)).handle("default", {"operation": "preview", "key": "k"})

    assert response.status_code == 502
    assert response.body["error"] == "Storage backend unavailable"
    assert "refused" not in json.dumps(response.body)


@pytest.mark.asyncio
async def test_timeout_is_504():
    def slow(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    response = await _relay(Backend(slow)).handle("default", {"operation": "preview", "key": "k"})

    assert response.status_code == 504
    assert response.body["error"] == "Storage backend timed out"
    assert response.body["type"] == "TransportTimeout"


@pytest.mark.asyncio
async def test_malformed_backend_reply_is_502():
    backend = Backend(lambda r: httpx.Response(200, json={"key": "only"}))

    response = await _relay(backend).handle("default", {"operation": "init", "bucket_id": "media", "size": 1})

    assert response.status_code == 502
    assert response.body["type"] == "BackendError"


@pytest.mark.asyncio
async def test_unexpected_fault_never_escapes():
    def broken_factory(base_url, api_key):
        raise RuntimeError("disk on fire")

    relay = StorageRelayService("secret-key", PROVIDERS, backend_factory=broken_factory)

    response = await relay.handle("default", {"operation": "preview", "key": "k"})

    assert response.status_code == 500
    assert response.body["error"] == "Internal relay error"
    assert "fire" not in json.dumps(response.body)


@pytest.mark.asyncio
async def test_no_content_abort_is_relayed_without_a_body():
    backend = Backend(lambda r: httpx.Response(204))

    response = await _relay(backend).handle("default", {"operation": "abort", "upload_id": "u", "key": "k"})

    assert response.status_code == 204
    assert response.body is None


@pytest.mark.asyncio
async def test_no_content_where_a_result_is_required_is_502():
    backend = Backend(lambda r: httpx.Response(204))

    response = await _relay(backend).handle("default", {"operation": "preview", "key": "k"})

    assert response.status_code == 502
    assert response.body["type"] == "BackendError"


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["partNumber", "part_number"])
async def test_backend_part_number_wins_over_the_requested_one(field):
    backend = Backend(lambda r: httpx.Response(200, json={field: 4, "url": "https://s.test/4"}))

    response = await _relay(backend).handle(
        "default", {"operation": "part-url", "upload_id": "u", "key": "k", "part_number": 3}
    )

    assert response.status_code == 200
    assert response.body["part_number"] == 4
