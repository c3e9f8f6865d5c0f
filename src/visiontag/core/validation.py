"""Upload validation: media type allow-list and size ceiling."""

from __future__ import annotations

from visiontag.errors import ValidationError

ALLOWED_MIME_TYPES: frozenset[str] = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
    }
)

MAX_FILE_SIZE: int = 10 * 1024 * 1024

INVALID_TYPE_MESSAGE = "Invalid file type. Please upload JPEG, PNG, WebP, or GIF images."
TOO_LARGE_MESSAGE = "File size too large. Please upload images smaller than 10MB."


def validate_image(media_type: str, byte_size: int, *, max_size: int = MAX_FILE_SIZE) -> None:
    """Check a candidate upload against the allow-list and size ceiling.

    Raises:
        ValidationError: With a user-facing reason when the file is rejected.
    """
    if media_type not in ALLOWED_MIME_TYPES:
        raise ValidationError(INVALID_TYPE_MESSAGE)
    if byte_size < 0:
        raise ValidationError(f"Invalid file size: {byte_size}")
    if byte_size > max_size:
        raise ValidationError(TOO_LARGE_MESSAGE)


def is_valid_image(media_type: str, byte_size: int, *, max_size: int = MAX_FILE_SIZE) -> bool:
    try:
        validate_image(media_type, byte_size, max_size=max_size)
    except ValidationError:
        return False
    return True
