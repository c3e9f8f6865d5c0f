"""Analyze request handler: decode, classify, assemble, and wrap in an envelope."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import status

from visiontag.api.schemas import AnalyzeImageResponse
from visiontag.core.assembler import MAX_TAGS, assemble_analysis
from visiontag.core.encoding import decode
from visiontag.core.validation import MAX_FILE_SIZE, validate_image
from visiontag.errors import ClassificationError, ValidationError

if TYPE_CHECKING:
    from visiontag.api.schemas import AnalyzeImageRequest
    from visiontag.ml.image_classifier import ClassificationGateway

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "Missing required fields"
DEFAULT_FAILURE_MESSAGE = "Failed to analyze image"


async def handle_analyze(
    payload: AnalyzeImageRequest,
    *,
    gateway: ClassificationGateway,
    model_id: str,
    max_tags: int = MAX_TAGS,
    max_file_size: int = MAX_FILE_SIZE,
) -> tuple[int, AnalyzeImageResponse]:
    """Run one analyze request and return ``(http_status, envelope)``.

    Never raises: bad input yields a 400 envelope, provider or assembly
    failures a 500 envelope without an analysis.
    """
    if not payload.image_data or not payload.filename or not payload.mime_type:
        return status.HTTP_400_BAD_REQUEST, AnalyzeImageResponse(success=False, error=MISSING_FIELDS_MESSAGE)

    try:
        image = decode(payload.image_data)
        validate_image(payload.mime_type, len(image), max_size=max_file_size)
    except ValidationError as exc:
        logger.warning("Rejected analyze request for %s: %s", payload.filename, exc)
        return status.HTTP_400_BAD_REQUEST, AnalyzeImageResponse(success=False, error=str(exc))

    try:
        results = await gateway.classify(image, model_id)
        analysis = assemble_analysis(
            results,
            filename=payload.filename,
            file_size=len(image),
            mime_type=payload.mime_type,
            image_url=payload.image_data,
            max_tags=max_tags,
        )
    except ClassificationError as exc:
        logger.error("Classification failed for %s: %s", payload.filename, exc)
        return status.HTTP_500_INTERNAL_SERVER_ERROR, AnalyzeImageResponse(
            success=False, error=str(exc) or DEFAULT_FAILURE_MESSAGE
        )
    except Exception as exc:
        logger.exception("Error analyzing image %s", payload.filename)
        return status.HTTP_500_INTERNAL_SERVER_ERROR, AnalyzeImageResponse(
            success=False, error=str(exc) or DEFAULT_FAILURE_MESSAGE
        )

    logger.info("Analyzed %s (%d bytes, %d tags)", payload.filename, len(image), len(analysis.tags))
    return status.HTTP_200_OK, AnalyzeImageResponse(success=True, analysis=analysis)
