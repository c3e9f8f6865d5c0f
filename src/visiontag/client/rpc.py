"""Typed client for the ``/api/trpc`` procedures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from pydantic import TypeAdapter

from visiontag.api.schemas import Analysis, AnalyzeImageResponse, RpcHealthResponse
from visiontag.errors import TransportError

if TYPE_CHECKING:
    from visiontag.api.schemas import AnalysisPatch

_PREFIX = "/api/trpc"

_analysis_list = TypeAdapter(list[Analysis])
_optional_analysis = TypeAdapter(Analysis | None)


class RpcClient:
    """Calls the server procedures over HTTP and validates their responses.

    Raises TransportError for network failures, non-2xx statuses and bodies
    that are not JSON.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_url(cls, base_url: str, *, timeout: float = 30.0) -> RpcClient:
        return cls(httpx.AsyncClient(base_url=base_url, timeout=timeout))

    async def analyze_image(self, *, image_data: str, filename: str, mime_type: str) -> AnalyzeImageResponse:
        body = await self._call(
            "POST",
            "analyzeImage",
            json={"imageData": image_data, "filename": filename, "mimeType": mime_type},
        )
        return AnalyzeImageResponse.model_validate(body)

    async def get_images(self) -> list[Analysis]:
        return _analysis_list.validate_python(await self._call("GET", "getImages"))

    async def get_image_by_id(self, analysis_id: str) -> Analysis | None:
        return _optional_analysis.validate_python(await self._call("GET", "getImageById", params={"id": analysis_id}))

    async def update_image(self, analysis_id: str, update: AnalysisPatch) -> Analysis | None:
        body = await self._call(
            "POST",
            "updateImage",
            json={
                "id": analysis_id,
                "update": update.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude_none=True),
            },
        )
        return _optional_analysis.validate_python(body)

    async def delete_image(self, analysis_id: str) -> bool:
        return bool(await self._call("POST", "deleteImage", json={"id": analysis_id}))

    async def health_check(self) -> RpcHealthResponse:
        return RpcHealthResponse.model_validate(await self._call("GET", "healthCheck"))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, procedure: str, **kwargs: object) -> object:
        try:
            response = await self._client.request(method, f"{_PREFIX}/{procedure}", **kwargs)  # type: ignore[arg-type]
        except httpx.HTTPError as exc:
            raise TransportError(f"{procedure} failed: {exc}") from exc
        if response.is_error:
            raise TransportError(f"HTTP error! status: {response.status_code}", status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"{procedure} returned invalid JSON: {exc}") from exc
