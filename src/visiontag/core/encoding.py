"""Base64 transport encoding with optional data-URL declaration prefix."""

from __future__ import annotations

import base64
import binascii
import re

from visiontag.errors import ValidationError

_DATA_URL_PREFIX = re.compile(r"^data:(?P<media_type>[\w.+-]+/[\w.+-]+);base64,")


def encode(data: bytes, media_type: str | None = None) -> str:
    """Encode bytes as standard base64, as a data URL when a media type is given."""
    payload = base64.b64encode(data).decode("ascii")
    if media_type is None:
        return payload
    return f"data:{media_type};base64,{payload}"


def split_data_url(text: str) -> tuple[str | None, str]:
    """Split a possibly data-URL-prefixed string into (media type, base64 payload)."""
    match = _DATA_URL_PREFIX.match(text)
    if match is None:
        return None, text
    return match.group("media_type"), text[match.end() :]


def decode(text: str) -> bytes:
    """Decode base64 text back to bytes, stripping any data-URL prefix.

    Raises:
        ValidationError: If the payload is not valid base64.
    """
    _, payload = split_data_url(text)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError(f"Invalid base64 image data: {exc}") from exc
