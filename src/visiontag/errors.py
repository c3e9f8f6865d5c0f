"""Exception hierarchy shared by the server pipeline and the upload client."""

from __future__ import annotations


class VisionTagError(Exception):
    """Base class for all VisionTag failures."""


class ValidationError(VisionTagError):
    """Bad file type, size, encoding, or a missing required field."""


class ClassificationError(VisionTagError):
    """The classification provider could not produce a ranked label list."""


class UnauthorizedError(ClassificationError):
    """Missing or rejected provider credential."""


class TransportError(ClassificationError):
    """Network failure or non-2xx response while calling a remote endpoint."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderError(TransportError):
    """Non-2xx answer from the classification provider itself."""


class InvalidResponseError(ClassificationError):
    """Provider payload is not a list of label/score pairs."""
