"""Calls from the RPC layer into sibling HTTP endpoints.

``/api/analyze`` is served by this application. ``/api/images`` belongs to an
external analysis store that this service only talks to. Most operations
turn failures into an empty or negative result instead of raising;
``get_by_id`` raises TransportError so a missing record stays distinguishable
from an unreachable store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
from pydantic import TypeAdapter

from visiontag.api.schemas import Analysis, AnalyzeImageResponse
from visiontag.errors import TransportError

if TYPE_CHECKING:
    from visiontag.api.schemas import AnalysisPatch, AnalyzeImageInput
    from visiontag.config import Settings

logger = logging.getLogger(__name__)

_analysis_list = TypeAdapter(list[Analysis])


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_error:
        raise TransportError(f"HTTP error! status: {response.status_code}", status_code=response.status_code)


@dataclass(frozen=True)
class AnalysisService:
    """HTTP client for the analyze endpoint and the analysis store."""

    client: httpx.AsyncClient

    @classmethod
    def from_settings(cls, settings: Settings) -> AnalysisService:
        return cls(
            client=httpx.AsyncClient(
                base_url=settings.app_url,
                timeout=settings.request_timeout,
            )
        )

    async def analyze_image(self, request: AnalyzeImageInput) -> AnalyzeImageResponse:
        """Forward an analyze request to ``/api/analyze``."""
        try:
            response = await self.client.post("/api/analyze", json=request.model_dump(mode="json", by_alias=True))
            _raise_for_status(response)
            return AnalyzeImageResponse.model_validate(response.json())
        except (httpx.HTTPError, TransportError, ValueError) as exc:
            logger.error("Error during image analysis: %s", exc)
            return AnalyzeImageResponse(success=False, error=str(exc) or "Unknown error occurred")

    async def fetch_all(self) -> list[Analysis]:
        try:
            response = await self.client.get("/api/images")
            _raise_for_status(response)
            return _analysis_list.validate_python(response.json())
        except (httpx.HTTPError, TransportError, ValueError) as exc:
            logger.error("Error fetching images: %s", exc)
            return []

    async def get_by_id(self, analysis_id: str) -> Analysis | None:
        """Return the analysis, or None when the store has no such id.

        Raises:
            TransportError: If the store is unreachable, answers non-2xx other
                than 404, or returns an unparseable record.
        """
        try:
            response = await self.client.get(f"/api/images/{analysis_id}")
        except httpx.HTTPError as exc:
            logger.error("Error fetching image by ID %s: %s", analysis_id, exc)
            raise TransportError(f"Analysis store unreachable: {exc}") from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            logger.info("Analysis %s not found", analysis_id)
            return None
        _raise_for_status(response)
        try:
            return Analysis.model_validate(response.json())
        except ValueError as exc:
            logger.error("Invalid analysis record for %s: %s", analysis_id, exc)
            raise TransportError(f"Invalid analysis record: {exc}") from exc

    async def update(self, analysis_id: str, patch: AnalysisPatch) -> Analysis | None:
        try:
            response = await self.client.put(
                f"/api/images/{analysis_id}",
                json=patch.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude_none=True),
            )
            _raise_for_status(response)
            return Analysis.model_validate(response.json())
        except (httpx.HTTPError, TransportError, ValueError) as exc:
            logger.error("Error updating image %s: %s", analysis_id, exc)
            return None

    async def delete(self, analysis_id: str) -> bool:
        try:
            response = await self.client.delete(f"/api/images/{analysis_id}")
        except httpx.HTTPError as exc:
            logger.error("Error deleting image %s: %s", analysis_id, exc)
            return False
        return response.is_success

    async def aclose(self) -> None:
        await self.client.aclose()
