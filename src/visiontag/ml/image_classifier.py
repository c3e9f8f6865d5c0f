"""Image classification gateway protocol.

A gateway turns raw image bytes plus a model identifier into the provider's
ranked label list, or raises one of the ClassificationError subclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ClassificationResult:
    """A single classification prediction."""

    label: str
    score: float


class ClassificationGateway(Protocol):
    """Protocol for image classification providers."""

    async def classify(self, image: bytes, model_id: str) -> list[ClassificationResult]:
        """Classify an image and return the provider's ranked labels.

        Args:
            image: Raw encoded image file bytes (JPEG, PNG, ...).
            model_id: Provider model identifier.

        Returns:
            Results in the provider's native order, unmodified.

        Raises:
            UnauthorizedError: Missing or rejected credential.
            TransportError: Network failure or non-2xx response.
            InvalidResponseError: Payload is not a ranked label list.
        """
        ...
