"""Map provider classification results into Tag and Analysis records."""

from __future__ import annotations

import math
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from visiontag.api.schemas import Analysis, Tag

if TYPE_CHECKING:
    from collections.abc import Sequence

    from visiontag.api.schemas import AnalysisPatch
    from visiontag.ml.image_classifier import ClassificationResult

MAX_TAGS: int = 5


def utc_now() -> str:
    """Current UTC time as ISO-8601 text."""
    return datetime.now(UTC).isoformat()


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


def round_confidence(score: float) -> float:
    """Round half-up to two decimal places."""
    return math.floor(score * 100 + 0.5) / 100


def assemble_analysis(
    results: Sequence[ClassificationResult],
    *,
    filename: str,
    file_size: int,
    mime_type: str,
    image_url: str,
    max_tags: int = MAX_TAGS,
) -> Analysis:
    """Build a completed Analysis from the provider's ranked results.

    Only the first ``max_tags`` results are kept, in provider order.
    """
    now = utc_now()
    tags = [
        Tag(
            id=new_id("tag"),
            label=result.label,
            confidence=round_confidence(result.score),
            created_at=now,
        )
        for result in results[:max_tags]
    ]
    return Analysis(
        id=new_id("analysis"),
        filename=filename,
        original_name=filename,
        file_size=file_size,
        mime_type=mime_type,
        image_url=image_url,
        tags=tags,
        status="completed",
        created_at=now,
        updated_at=now,
    )


def apply_patch(analysis: Analysis, patch: AnalysisPatch) -> Analysis:
    """Return a copy of ``analysis`` with the patch's set fields merged in."""
    changes = patch.model_dump(exclude_unset=True, exclude_none=True, by_alias=False)
    if "tags" in changes:
        changes["tags"] = list(patch.tags or [])
    if changes.get("status", analysis.status) != "error":
        changes["error"] = None
    changes["updated_at"] = utc_now()
    return analysis.model_copy(update=changes)
