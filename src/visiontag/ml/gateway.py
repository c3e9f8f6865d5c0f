"""Hugging Face Inference API classification gateway.

The blocking InferenceClient call runs on ClassificationPool worker threads so
the event loop is never held by a provider round trip. No retries: any failure
is mapped onto the ClassificationError hierarchy and raised to the caller. A
full pool already raises TransportError and passes through unchanged.
"""

from __future__ import annotations

import logging
from numbers import Real
from typing import TYPE_CHECKING, Any

import httpx
from huggingface_hub import InferenceClient
from huggingface_hub.errors import HfHubHTTPError

from visiontag.errors import InvalidResponseError, ProviderError, TransportError, UnauthorizedError
from visiontag.ml.image_classifier import ClassificationResult

if TYPE_CHECKING:
    from visiontag.config import Settings
    from visiontag.ml.pool import ClassificationPool

logger = logging.getLogger(__name__)

_UNAUTHORIZED_STATUSES = {401, 403}


class HuggingFaceGateway:
    """ClassificationGateway backed by huggingface_hub.InferenceClient."""

    def __init__(
        self,
        token: str | None,
        pool: ClassificationPool,
        *,
        timeout: float | None = None,
        client: InferenceClient | None = None,
    ) -> None:
        self._token = token
        self._pool = pool
        self._client = client or InferenceClient(provider="hf-inference", token=token, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings, pool: ClassificationPool) -> HuggingFaceGateway:
        return cls(settings.hf_token, pool, timeout=settings.request_timeout)

    async def classify(self, image: bytes, model_id: str) -> list[ClassificationResult]:
        """Send image bytes to the provider and return its ranked labels unmodified."""
        if not self._token:
            raise UnauthorizedError("Hugging Face API token not provided")

        try:
            raw = await self._pool.run(self._call_provider, image, model_id)
        except HfHubHTTPError as exc:
            raise _map_http_error(exc) from exc
        except httpx.HTTPError as exc:
            logger.error("Network error calling classification provider: %s", exc)
            raise TransportError(f"Network error: {exc}") from exc
        except (ValueError, TypeError, KeyError) as exc:
            logger.error("Unparseable classification response: %s", exc)
            raise InvalidResponseError(f"Invalid classification response: {exc}") from exc

        return parse_results(raw)

    def _call_provider(self, image: bytes, model_id: str) -> list[Any]:
        return list(self._client.image_classification(image, model=model_id))


def parse_results(raw: object) -> list[ClassificationResult]:
    """Validate a provider payload as an ordered list of label/score pairs."""
    if not isinstance(raw, list):
        raise InvalidResponseError(f"Expected a list of predictions, got {type(raw).__name__}")

    results: list[ClassificationResult] = []
    for item in raw:
        if isinstance(item, dict):
            label, score = item.get("label"), item.get("score")
        else:
            label, score = getattr(item, "label", None), getattr(item, "score", None)

        if not isinstance(label, str):
            raise InvalidResponseError(f"Prediction label must be a string, got {label!r}")
        if isinstance(score, bool) or not isinstance(score, Real):
            raise InvalidResponseError(f"Prediction score must be numeric, got {score!r}")
        if not 0.0 <= float(score) <= 1.0:
            raise InvalidResponseError(f"Prediction score out of range: {score}")
        results.append(ClassificationResult(label=label, score=float(score)))
    return results


def _map_http_error(exc: HfHubHTTPError) -> Exception:
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if status_code in _UNAUTHORIZED_STATUSES:
        logger.warning("Classification provider rejected credential (status %s)", status_code)
        return UnauthorizedError(f"Hugging Face API rejected the token (status {status_code})")

    logger.error("Classification provider returned status %s: %s", status_code, exc)
    if status_code is None:
        return TransportError(str(exc))
    return ProviderError(f"HTTP error! status: {status_code}", status_code=status_code)
