"""Environment-based configuration for VisionTag."""

from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from VISIONTAG_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="VISIONTAG_",
        case_sensitive=False,
        populate_by_name=True,
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8082

    # Base URL the server uses to reach its own sibling endpoints
    app_url: str = "http://127.0.0.1:8082"

    # Classification provider (None = every classify call is unauthorized)
    hf_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("VISIONTAG_HF_TOKEN", "HUGGING_FACE_API_TOKEN"),
    )
    model_id: str = "google/vit-base-patch16-224"
    max_tags: int = Field(default=5, ge=1, le=5)

    # Input limits
    max_file_size: int = Field(default=10 * 1024 * 1024, ge=1)

    # Outbound HTTP
    request_timeout: float = Field(default=30.0, gt=0)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)
    queue_timeout: float = Field(default=5.0, gt=0)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
