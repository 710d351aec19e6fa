import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from api.dependencies import get_relay_service
from api.routes.storage import handle_storage_request
from application.services.relay_service import StorageRelayService
from infrastructure.external.api_clients import backend_client_factory
from main import create_app
from shared.codes import BusinessCode


def _relay(object_store, api_key="secret-key"):
    return StorageRelayService(
        api_key=api_key,
        providers={"default": "http://backend.test/v1"},
        backend_factory=backend_client_factory(transport=httpx.MockTransport(object_store.backend)),
    )


@pytest.fixture
def client(object_store):
    app = create_app()
    app.dependency_overrides[get_relay_service] = lambda: _relay(object_store)
    return TestClient(app)


def test_init_through_http(client):
    response = client.post(
        "/api/v1/storage/default",
        json={"operation": "init", "bucket_id": "media", "size": 12, "filename": "a.txt"},
    )

    assert response.status_code == 200
    assert response.json() == {"upload_id": "u1", "key": "media/a.txt"}
    assert response.headers["X-Request-ID"]


def test_errors_carry_the_request_id(client):
    response = client.post(
        "/api/v1/storage/default",
        content=b"{broken",
        headers={"X-Request-ID": "trace-42", "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["type"] == "InvalidRequest"
    assert body["request_id"] == "trace-42"
    assert response.headers["X-Request-ID"] == "trace-42"


def test_unknown_provider(client):
    response = client.post("/api/v1/storage/nowhere", json={"operation": "preview", "key": "k"})

    assert response.status_code == 404
    assert response.json()["error"] == "Missing or invalid storage route"


def test_missing_provider_segment(client):
    response = client.post("/api/v1/storage", json={"operation": "preview", "key": "k"})

    assert response.status_code == 404
    assert response.json()["code"] == BusinessCode.INVALID_ROUTE


def test_wrong_method(client):
    response = client.get("/api/v1/storage/default")

    assert response.status_code == 405
    assert response.json()["error"] == "Missing or invalid storage route"


def test_backend_404_passes_through(client):
    response = client.post("/api/v1/storage/default", json={"operation": "preview", "key": "media/none"})

    assert response.status_code == 404
    assert response.json()["error"] == "NoSuchKey"


def test_unconfigured_relay(object_store):
    app = create_app()
    app.dependency_overrides[get_relay_service] = lambda: _relay(object_store, api_key=None)

    response = TestClient(app).post("/api/v1/storage/default", json={"operation": "preview", "key": "k"})

    assert response.status_code == 500
    assert response.json()["type"] == "ConfigurationError"


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def _embedding_app(relay=None, api_key=None):
    app = FastAPI()

    @app.post("/uploads/{provider}")
    async def uploads(provider: str, request: Request):
        return await handle_storage_request(request, provider, api_key, relay=relay)

    return app


def test_embedded_relay_without_key_reports_configuration_error():
    response = TestClient(_embedding_app()).post("/uploads/default", json={"operation": "preview", "key": "k"})

    assert response.status_code == 500
    assert response.json()["type"] == "ConfigurationError"


def test_embedded_relay_forwards(object_store):
    object_store.objects["media/a.txt"] = b"hi"
    app = _embedding_app(relay=_relay(object_store))

    response = TestClient(app).post("/uploads/default", json={"operation": "preview", "key": "media/a.txt"})

    assert response.status_code == 200
    assert response.json() == {
        "key": "media/a.txt",
        "url": "http://s3.test/media/a.txt?X-Sig=get",
        "expires_at": 1_900_000_000,
    }


def test_no_content_abort_goes_out_without_a_body():
    relay = StorageRelayService(
        api_key="secret-key",
        providers={"default": "http://backend.test/v1"},
        backend_factory=backend_client_factory(transport=httpx.MockTransport(lambda r: httpx.Response(204))),
    )
    app = create_app()
    app.dependency_overrides[get_relay_service] = lambda: relay

    response = TestClient(app).post(
        "/api/v1/storage/default", json={"operation": "abort", "upload_id": "u1", "key": "k1"}
    )

    assert response.status_code == 204
    assert response.content == b""
    assert response.headers.get("content-length") in (None, "0")
