"""Per-file upload driver: validate, encode, analyze, record.

Each file's steps run strictly in order. Files in a batch run concurrently
on the event loop and only meet in UploadState, which they touch through its
keyed operations. A failure is recorded on the file's own entry and never
interrupts its siblings.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from visiontag.client.preview import PreviewRegistry
from visiontag.client.state import DEFAULT_ERROR_MESSAGE, UploadEntry, UploadPatch
from visiontag.core.encoding import encode
from visiontag.core.validation import MAX_FILE_SIZE, validate_image
from visiontag.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from visiontag.api.schemas import AnalyzeImageResponse
    from visiontag.client.files import ImageFile
    from visiontag.client.state import UploadState

logger = logging.getLogger(__name__)

READ_ERROR_MESSAGE = "Failed to read file"


class Analyzer(Protocol):
    async def analyze_image(self, *, image_data: str, filename: str, mime_type: str) -> AnalyzeImageResponse: ...


def _log_rejection(filename: str, message: str) -> None:
    logger.warning("Rejected %s: %s", filename, message)


class UploadOrchestrator:
    """Drives files through the analyze pipeline and mirrors progress into state."""

    def __init__(
        self,
        state: UploadState,
        analyzer: Analyzer,
        *,
        previews: PreviewRegistry | None = None,
        on_rejected: Callable[[str, str], None] = _log_rejection,
        max_file_size: int = MAX_FILE_SIZE,
    ) -> None:
        self._state = state
        self._analyzer = analyzer
        self._previews = previews if previews is not None else PreviewRegistry()
        self._on_rejected = on_rejected
        self._max_file_size = max_file_size

    @property
    def previews(self) -> PreviewRegistry:
        return self._previews

    async def process_file(self, file: ImageFile) -> UploadEntry | None:
        """Run one file through the pipeline.

        Returns the file's final entry, or None if it was rejected up front or
        removed while in flight.
        """
        name = file.name
        try:
            media_type, size = file.media_type, file.size
            validate_image(media_type, size, max_size=self._max_file_size)
        except (ValidationError, OSError) as exc:
            self._on_rejected(name, str(exc) or READ_ERROR_MESSAGE)
            return None

        self._release_preview(name)
        self._state.add_upload(UploadEntry(filename=name, mime_type=media_type, size=size))
        preview = self._previews.create(file)
        self._state.update_upload(name, UploadPatch(status="uploading", preview=preview))

        try:
            data = await file.read()
            image_data = encode(data, media_type)
        except OSError as exc:
            logger.error("Could not read %s: %s", name, exc)
            self._state.update_upload(name, UploadPatch(status="error", error=READ_ERROR_MESSAGE))
            return self._state.get_upload(name)
        except Exception as exc:
            logger.error("Could not prepare %s: %s", name, exc)
            self._state.update_upload(name, UploadPatch(status="error", error=str(exc) or "Failed to process file"))
            return self._state.get_upload(name)

        self._state.update_upload(name, UploadPatch(status="processing"))
        try:
            result = await self._analyzer.analyze_image(image_data=image_data, filename=name, mime_type=media_type)
        except Exception as exc:
            logger.error("Analysis of %s failed: %s", name, exc)
            self._state.update_upload(name, UploadPatch(status="error", error=str(exc) or DEFAULT_ERROR_MESSAGE))
            return self._state.get_upload(name)

        if result.success and result.analysis is not None:
            if self._state.get_upload(name) is not None:
                self._state.add_analysis(result.analysis)
            self._state.update_upload(name, UploadPatch(status="completed", analysis=result.analysis))
        else:
            self._state.update_upload(name, UploadPatch(status="error", error=result.error or DEFAULT_ERROR_MESSAGE))
        return self._state.get_upload(name)

    async def process_files(self, files: Iterable[ImageFile]) -> list[UploadEntry | None]:
        """Process files concurrently; each result lines up with its input file."""
        self._state.set_loading(True)
        self._state.set_error(None)
        try:
            outcomes = await asyncio.gather(*(self.process_file(f) for f in files), return_exceptions=True)
        finally:
            self._state.set_loading(False)

        entries: list[UploadEntry | None] = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                logger.error("Upload pipeline crashed: %s", outcome)
                self._state.set_error(str(outcome) or DEFAULT_ERROR_MESSAGE)
                entries.append(None)
            else:
                entries.append(outcome)
        return entries

    def remove(self, filename: str) -> None:
        """Drop an upload and release its preview. In-flight work is not cancelled."""
        self._release_preview(filename)
        self._state.remove_upload(filename)

    def clear(self) -> None:
        for entry in self._state.uploads:
            if entry.preview is not None:
                self._previews.revoke(entry.preview)
        self._state.clear_uploads()

    def _release_preview(self, filename: str) -> None:
        entry = self._state.get_upload(filename)
        if entry is not None and entry.preview is not None:
            self._previews.revoke(entry.preview)
