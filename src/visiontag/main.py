"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from visiontag.api.routes import router
from visiontag.api.rpc import router as rpc_router
from visiontag.api.service import AnalysisService
from visiontag.config import get_settings
from visiontag.ml.gateway import HuggingFaceGateway
from visiontag.ml.pool import ClassificationPool

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting VisionTag (model=%s, max_concurrent=%s, app_url=%s)",
        settings.model_id,
        settings.max_concurrent,
        settings.app_url,
    )
    if settings.hf_token is None:
        logger.warning("No Hugging Face token configured; classification requests will fail")

    inference_pool = ClassificationPool.from_settings(settings)
    app.state.inference_pool = inference_pool
    app.state.gateway = HuggingFaceGateway.from_settings(settings, inference_pool)
    analysis_service = AnalysisService.from_settings(settings)
    app.state.analysis_service = analysis_service

    logger.info("VisionTag ready")
    yield

    logger.info("Shutting down VisionTag")
    await analysis_service.aclose()
    inference_pool.shutdown()
    logger.info("VisionTag shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="VisionTag",
        description="Image upload tagging API backed by a remote vision classifier",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    application.include_router(rpc_router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("visiontag.main:app", host=settings.host, port=settings.port)
