"""API route definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from visiontag.api.schemas import AnalyzeImageRequest, AnalyzeImageResponse, HealthResponse
from visiontag.core.handler import handle_analyze

if TYPE_CHECKING:
    from visiontag.config import Settings
    from visiontag.ml.image_classifier import ClassificationGateway
    from visiontag.ml.pool import ClassificationPool

router = APIRouter(prefix="/api")


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_gateway(request: Request) -> ClassificationGateway:
    gateway: ClassificationGateway = request.app.state.gateway
    return gateway


def _get_inference_pool(request: Request) -> ClassificationPool:
    pool: ClassificationPool = request.app.state.inference_pool
    return pool


@router.post(
    "/analyze",
    response_model=AnalyzeImageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": AnalyzeImageResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": AnalyzeImageResponse},
    },
    summary="Classify a base64-encoded image",
)
async def analyze(payload: AnalyzeImageRequest, request: Request) -> JSONResponse:
    """Classify an image and return its analysis inside a success/failure envelope."""
    settings = _get_settings(request)
    status_code, envelope = await handle_analyze(
        payload,
        gateway=_get_gateway(request),
        model_id=settings.model_id,
        max_tags=settings.max_tags,
        max_file_size=settings.max_file_size,
    )
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = _get_settings(request)
    stats = _get_inference_pool(request).stats()
    return HealthResponse(
        status="ok",
        model=settings.model_id,
        provider_configured=settings.hf_token is not None,
        concurrent_requests=stats.active,
        queue_depth=stats.waiting,
        provider_calls=stats.completed,
        provider_failures=stats.failed,
    )
