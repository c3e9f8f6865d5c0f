"""Tests for the VisionTag HTTP API and RPC procedures."""

from __future__ import annotations

import base64
import json
import os
from typing import TYPE_CHECKING
from unittest.mock import patch

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

import httpx
import pytest
from fastapi import FastAPI, status

from visiontag.api.service import AnalysisService
from visiontag.config import get_settings
from visiontag.errors import ProviderError, TransportError, UnauthorizedError
from visiontag.main import create_app
from visiontag.ml.image_classifier import ClassificationResult
from visiontag.ml.pool import ClassificationPool

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()

STORED_ANALYSIS = {
    "id": "analysis-1",
    "filename": "cat.png",
    "originalName": "cat.png",
    "fileSize": 72,
    "mimeType": "image/png",
    "imageUrl": PNG_DATA_URL,
    "tags": [{"id": "tag-1", "label": "tabby cat", "confidence": 0.92, "created_at": "2024-01-01T00:00:00+00:00"}],
    "status": "completed",
    "created_at": "2024-01-01T00:00:00+00:00",
    "updated_at": "2024-01-01T00:00:00+00:00",
}


class FakeGateway:
    """Records calls and returns canned results or raises a canned error."""

    def __init__(
        self,
        results: list[ClassificationResult] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.results = results or []
        self.error = error
        self.calls: list[tuple[bytes, str]] = []

    async def classify(self, image: bytes, model_id: str) -> list[ClassificationResult]:
        self.calls.append((image, model_id))
        if self.error is not None:
            raise self.error
        return self.results


def _init_app_state(app: FastAPI, gateway: FakeGateway, **env_overrides: str) -> None:
    """Manually initialize app state (ASGITransport does not trigger lifespan).

    The analysis service is pointed back at the app itself, the way the
    configured base URL points at the running server.
    """
    with patch.dict(os.environ, env_overrides):
        settings = get_settings()
    app.state.settings = settings
    app.state.inference_pool = ClassificationPool.from_settings(settings)
    app.state.gateway = gateway
    app.state.analysis_service = AnalysisService(
        client=httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
    )


async def _use_store(app: FastAPI, handler: Callable[[httpx.Request], httpx.Response]) -> None:
    """Replace the sibling-endpoint client with a mocked analysis store."""
    await app.state.analysis_service.aclose()
    app.state.analysis_service = AnalysisService(
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://store")
    )


async def _make_client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac
    await app.state.analysis_service.aclose()
    pool: ClassificationPool = app.state.inference_pool
    pool.shutdown()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway(
        results=[
            ClassificationResult(label="tabby cat", score=0.9231),
            ClassificationResult(label="tiger cat", score=0.511),
        ]
    )


@pytest.fixture()
def app(gateway: FakeGateway) -> FastAPI:
    """Create a fresh app instance with default settings."""
    application = create_app()
    _init_app_state(application, gateway)
    return application


@pytest.fixture()
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    """Async HTTP client for testing the app."""
    async for ac in _make_client(app):
        yield ac


class TestHealthEndpoint:
    async def test_health_returns_ok(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/health")
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "ok"
        assert data["model"] == "google/vit-base-patch16-224"
        assert isinstance(data["concurrent_requests"], int)
        assert isinstance(data["queue_depth"], int)
        assert data["provider_calls"] == 0
        assert data["provider_failures"] == 0

    async def test_health_reports_configured_model(self) -> None:
        custom_app = create_app()
        _init_app_state(custom_app, FakeGateway(), VISIONTAG_MODEL_ID="microsoft/resnet-50")
        async for ac in _make_client(custom_app):
            response = await ac.get("/api/health")
            assert response.json()["model"] == "microsoft/resnet-50"


class TestAnalyzeEndpoint:
    async def test_analyze_returns_tags(self, client: httpx.AsyncClient, gateway: FakeGateway) -> None:
        response = await client.post(
            "/api/analyze",
            json={"imageData": PNG_DATA_URL, "filename": "cat.png", "mimeType": "image/png"},
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        analysis = data["analysis"]
        assert analysis["status"] == "completed"
        assert analysis["originalName"] == "cat.png"
        assert analysis["fileSize"] == len(PNG_BYTES)
        assert analysis["imageUrl"] == PNG_DATA_URL
        assert [(t["label"], t["confidence"]) for t in analysis["tags"]] == [("tabby cat", 0.92), ("tiger cat", 0.51)]
        assert "error" not in data
        assert gateway.calls == [(PNG_BYTES, "google/vit-base-patch16-224")]

    async def test_missing_field_returns_400(self, client: httpx.AsyncClient, gateway: FakeGateway) -> None:
        response = await client.post("/api/analyze", json={"imageData": PNG_DATA_URL, "mimeType": "image/png"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"success": False, "error": "Missing required fields"}
        assert gateway.calls == []

    async def test_empty_field_returns_400(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/analyze",
            json={"imageData": "", "filename": "cat.png", "mimeType": "image/png"},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    async def test_non_string_field_returns_400_envelope(
        self, client: httpx.AsyncClient, gateway: FakeGateway
    ) -> None:
        response = await client.post(
            "/api/analyze",
            json={"imageData": PNG_DATA_URL, "filename": 1, "mimeType": "image/png"},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"success": False, "error": "Missing required fields"}
        assert gateway.calls == []

    async def test_invalid_base64_returns_400(self, client: httpx.AsyncClient, gateway: FakeGateway) -> None:
        response = await client.post(
            "/api/analyze",
            json={"imageData": "data:image/png;base64,@@@not-base64@@@", "filename": "cat.png", "mimeType": "image/png"},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["success"] is False
        assert gateway.calls == []

    async def test_disallowed_media_type_returns_400(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/analyze",
            json={"imageData": PNG_DATA_URL, "filename": "cat.bmp", "mimeType": "image/bmp"},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "Invalid file type" in response.json()["error"]

    async def test_provider_failure_returns_500(self) -> None:
        failing_app = create_app()
        _init_app_state(failing_app, FakeGateway(error=ProviderError("HTTP error! status: 503", status_code=503)))
        async for ac in _make_client(failing_app):
            response = await ac.post(
                "/api/analyze",
                json={"imageData": PNG_DATA_URL, "filename": "cat.png", "mimeType": "image/png"},
            )
            assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
            assert response.json() == {"success": False, "error": "HTTP error! status: 503"}

    async def test_unauthorized_returns_500_with_message(self) -> None:
        failing_app = create_app()
        _init_app_state(failing_app, FakeGateway(error=UnauthorizedError("Hugging Face API token not provided")))
        async for ac in _make_client(failing_app):
            response = await ac.post(
                "/api/analyze",
                json={"imageData": PNG_DATA_URL, "filename": "cat.png", "mimeType": "image/png"},
            )
            assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
            assert response.json()["error"] == "Hugging Face API token not provided"


class TestAnalyzeImageProcedure:
    async def test_forwards_to_analyze_endpoint(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/trpc/analyzeImage",
            json={"imageData": PNG_DATA_URL, "filename": "cat.png", "mimeType": "image/png"},
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["analysis"]["filename"] == "cat.png"
        assert len(data["analysis"]["tags"]) == 2

    async def test_empty_input_rejected_by_schema(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/trpc/analyzeImage",
            json={"imageData": PNG_DATA_URL, "filename": "", "mimeType": "image/png"},
        )
        assert response.status_code == 422

    async def test_endpoint_failure_becomes_envelope(self) -> None:
        failing_app = create_app()
        _init_app_state(failing_app, FakeGateway(error=ProviderError("HTTP error! status: 503", status_code=503)))
        async for ac in _make_client(failing_app):
            response = await ac.post(
                "/api/trpc/analyzeImage",
                json={"imageData": PNG_DATA_URL, "filename": "cat.png", "mimeType": "image/png"},
            )
            assert response.status_code == status.HTTP_200_OK
            assert response.json() == {"success": False, "error": "HTTP error! status: 500"}


class TestStoreProcedures:
    async def test_get_images(self, app: FastAPI, client: httpx.AsyncClient) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/images"
            return httpx.Response(200, json=[STORED_ANALYSIS])

        await _use_store(app, handler)
        response = await client.get("/api/trpc/getImages")
        assert response.status_code == status.HTTP_200_OK
        assert [a["id"] for a in response.json()] == ["analysis-1"]

    async def test_get_images_empty_on_store_failure(self, app: FastAPI, client: httpx.AsyncClient) -> None:
        await _use_store(app, lambda request: httpx.Response(502))
        response = await client.get("/api/trpc/getImages")
        assert response.json() == []

    async def test_get_image_by_id(self, app: FastAPI, client: httpx.AsyncClient) -> None:
        await _use_store(app, lambda request: httpx.Response(200, json=STORED_ANALYSIS))
        response = await client.get("/api/trpc/getImageById", params={"id": "analysis-1"})
        assert response.json()["tags"][0]["label"] == "tabby cat"

    async def test_get_image_by_id_not_found_is_null(self, app: FastAPI, client: httpx.AsyncClient) -> None:
        await _use_store(app, lambda request: httpx.Response(404))
        response = await client.get("/api/trpc/getImageById", params={"id": "missing"})
        assert response.status_code == status.HTTP_200_OK
        assert response.json() is None

    async def test_get_image_by_id_unreachable_store_is_bad_gateway(
        self, app: FastAPI, client: httpx.AsyncClient
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        await _use_store(app, handler)
        response = await client.get("/api/trpc/getImageById", params={"id": "analysis-1"})
        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert "unreachable" in response.json()["detail"]

    async def test_get_image_by_id_store_error_is_bad_gateway(self, app: FastAPI, client: httpx.AsyncClient) -> None:
        await _use_store(app, lambda request: httpx.Response(500))
        response = await client.get("/api/trpc/getImageById", params={"id": "analysis-1"})
        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["detail"] == "HTTP error! status: 500"

    async def test_get_by_id_distinguishes_missing_from_unreachable(self) -> None:
        missing = AnalysisService(
            client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(404)), base_url="http://store"
            )
        )

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        unreachable = AnalysisService(
            client=httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url="http://store")
        )
        try:
            assert await missing.get_by_id("missing") is None
            with pytest.raises(TransportError):
                await unreachable.get_by_id("analysis-1")
        finally:
            await missing.aclose()
            await unreachable.aclose()

    async def test_get_image_by_id_requires_id(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/trpc/getImageById", params={"id": ""})
        assert response.status_code == 422

    async def test_update_image_sends_partial_patch(self, app: FastAPI, client: httpx.AsyncClient) -> None:
        seen: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = request.read()
            return httpx.Response(200, json={**STORED_ANALYSIS, "filename": "renamed.png"})

        await _use_store(app, handler)
        response = await client.post(
            "/api/trpc/updateImage",
            json={"id": "analysis-1", "update": {"filename": "renamed.png"}},
        )
        assert response.json()["filename"] == "renamed.png"
        assert seen["method"] == "PUT"
        assert seen["path"] == "/api/images/analysis-1"
        assert json.loads(seen["body"]) == {"filename": "renamed.png"}  # type: ignore[arg-type]

    async def test_update_image_rejects_unknown_status(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/trpc/updateImage",
            json={"id": "analysis-1", "update": {"status": "archived"}},
        )
        assert response.status_code == 422

    async def test_update_image_null_on_failure(self, app: FastAPI, client: httpx.AsyncClient) -> None:
        await _use_store(app, lambda request: httpx.Response(500))
        response = await client.post(
            "/api/trpc/updateImage",
            json={"id": "analysis-1", "update": {"status": "error", "error": "bad"}},
        )
        assert response.json() is None

    async def test_delete_image(self, app: FastAPI, client: httpx.AsyncClient) -> None:
        await _use_store(app, lambda request: httpx.Response(204))
        response = await client.post("/api/trpc/deleteImage", json={"id": "analysis-1"})
        assert response.json() is True

    async def test_delete_image_false_when_store_refuses(self, app: FastAPI, client: httpx.AsyncClient) -> None:
        await _use_store(app, lambda request: httpx.Response(404))
        response = await client.post("/api/trpc/deleteImage", json={"id": "analysis-1"})
        assert response.json() is False


class TestHealthCheckProcedure:
    async def test_health_check(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/trpc/healthCheck")
        data = response.json()
        assert data["status"] == "ok"
        assert data["message"] == "Visual Tagging API is running"
        assert data["timestamp"]
