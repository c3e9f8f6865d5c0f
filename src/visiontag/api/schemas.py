"""Pydantic request/response schemas for the VisionTag API.

Wire names follow the browser contract: camelCase for the image fields,
snake_case for timestamps. Python attributes are always snake_case.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

AnalysisStatus = Literal["uploading", "processing", "completed", "error"]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, serialize_by_alias=True)


class Tag(_WireModel):
    """A single classification label with its rounded confidence."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    created_at: str


class Analysis(_WireModel):
    """Outcome of classifying one uploaded image."""

    id: str
    filename: str
    original_name: str = Field(alias="originalName")
    file_size: int = Field(alias="fileSize", ge=0)
    mime_type: str = Field(alias="mimeType")
    image_url: str = Field(alias="imageUrl", description="Inline data URL of the image content")
    tags: list[Tag] = Field(default_factory=list, max_length=5)
    status: AnalysisStatus
    error: str | None = None
    created_at: str
    updated_at: str


class AnalysisPatch(_WireModel):
    """Partial update for an Analysis; unset fields are left untouched."""

    filename: str | None = None
    tags: list[Tag] | None = None
    status: AnalysisStatus | None = None
    error: str | None = None


class AnalyzeImageRequest(_WireModel):
    """Body of the analyze endpoint. Fields may be empty or mistyped; the handler rejects that."""

    image_data: str | None = Field(default=None, alias="imageData")
    filename: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")

    @field_validator("image_data", "filename", "mime_type", mode="before")
    @classmethod
    def _non_string_as_missing(cls, value: object) -> object:
        # A non-string value counts as missing.
        return value if isinstance(value, str) else None


class AnalyzeImageInput(_WireModel):
    """Strict input of the analyzeImage procedure."""

    image_data: str = Field(alias="imageData", min_length=1)
    filename: str = Field(min_length=1)
    mime_type: str = Field(alias="mimeType", min_length=1)


class AnalyzeImageResponse(_WireModel):
    """Success/failure envelope returned by the analyze endpoint."""

    success: bool
    analysis: Analysis | None = None
    error: str | None = None


class ImageIdInput(_WireModel):
    id: str = Field(min_length=1)


class UpdateImageInput(_WireModel):
    id: str = Field(min_length=1)
    update: AnalysisPatch


class RpcHealthResponse(_WireModel):
    """healthCheck procedure response."""

    status: str = "ok"
    timestamp: str
    message: str


class HealthResponse(_WireModel):
    """Service health check response."""

    status: str = "ok"
    model: str
    provider_configured: bool
    concurrent_requests: int
    queue_depth: int
    provider_calls: int = 0
    provider_failures: int = 0
