"""Typed procedures consumed by the upload client.

Each procedure is a plain JSON endpoint under ``/api/trpc/<name>``; inputs
are validated by their pydantic models before the service is touched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, HTTPException, Query, Request, status

from visiontag.api.schemas import (
    Analysis,
    AnalyzeImageInput,
    AnalyzeImageResponse,
    ImageIdInput,
    RpcHealthResponse,
    UpdateImageInput,
)
from visiontag.core.assembler import utc_now
from visiontag.errors import TransportError

if TYPE_CHECKING:
    from visiontag.api.service import AnalysisService

router = APIRouter(prefix="/api/trpc", tags=["rpc"])


def _get_service(request: Request) -> AnalysisService:
    service: AnalysisService = request.app.state.analysis_service
    return service


@router.post("/analyzeImage", response_model=AnalyzeImageResponse, response_model_exclude_none=True)
async def analyze_image(payload: AnalyzeImageInput, request: Request) -> AnalyzeImageResponse:
    return await _get_service(request).analyze_image(payload)


@router.get("/getImages", response_model=list[Analysis], response_model_exclude_none=True)
async def get_images(request: Request) -> list[Analysis]:
    return await _get_service(request).fetch_all()


@router.get("/getImageById", response_model=Analysis | None, response_model_exclude_none=True)
async def get_image_by_id(
    request: Request,
    id: Annotated[str, Query(min_length=1)],  # noqa: A002
) -> Analysis | None:
    """Return the analysis, null when the store has no such id, 502 when the store fails."""
    try:
        return await _get_service(request).get_by_id(id)
    except TransportError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.post("/updateImage", response_model=Analysis | None, response_model_exclude_none=True)
async def update_image(payload: UpdateImageInput, request: Request) -> Analysis | None:
    return await _get_service(request).update(payload.id, payload.update)


@router.post("/deleteImage", response_model=bool)
async def delete_image(payload: ImageIdInput, request: Request) -> bool:
    return await _get_service(request).delete(payload.id)


@router.get("/healthCheck", response_model=RpcHealthResponse)
async def health_check() -> RpcHealthResponse:
    """Connectivity probe for the client."""
    return RpcHealthResponse(
        status="ok",
        timestamp=utc_now(),
        message="Visual Tagging API is running",
    )
