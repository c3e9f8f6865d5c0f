"""Client-side upload and analysis state.

UploadState is an explicitly owned container: create one per client (or per
test) and pass it to whatever drives uploads. Entries are frozen and every
write swaps in a new mapping, so a snapshot taken by a reader never changes
underneath it.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import TYPE_CHECKING, Literal, get_args

from visiontag.core.assembler import apply_patch

if TYPE_CHECKING:
    from visiontag.api.schemas import Analysis, AnalysisPatch

UploadStatus = Literal["pending", "uploading", "processing", "completed", "error"]

UPLOAD_STATUSES: tuple[str, ...] = get_args(UploadStatus)
DEFAULT_ERROR_MESSAGE = "Failed to analyze image"


@dataclass(frozen=True)
class UploadEntry:
    """Tracking record for one upload, keyed by filename."""

    filename: str
    mime_type: str
    size: int
    status: UploadStatus = "pending"
    preview: str | None = None
    analysis: Analysis | None = None
    error: str | None = None


@dataclass(frozen=True)
class UploadPatch:
    """Partial update for an UploadEntry. None means "leave unchanged"."""

    status: UploadStatus | None = None
    preview: str | None = None
    analysis: Analysis | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.status is not None and self.status not in UPLOAD_STATUSES:
            raise ValueError(f"Unknown upload status: {self.status!r}")


def merge_upload(entry: UploadEntry, patch: UploadPatch) -> UploadEntry:
    """Apply ``patch`` to ``entry``, keeping analysis and error mutually exclusive.

    An ``error`` status always carries a message and never an analysis; any
    other status never carries an error.
    """
    changes = {f.name: getattr(patch, f.name) for f in fields(patch) if getattr(patch, f.name) is not None}
    status = changes.get("status", entry.status)
    if status == "error":
        changes["analysis"] = None
        changes.setdefault("error", entry.error or DEFAULT_ERROR_MESSAGE)
    else:
        changes["error"] = None
    return replace(entry, **changes)


class UploadState:
    """In-memory uploads (by filename) and analyses (by id) plus UI flags."""

    def __init__(self) -> None:
        self._uploads: dict[str, UploadEntry] = {}
        self._analyses: dict[str, Analysis] = {}
        self._is_loading: bool = False
        self._error: str | None = None

    # -- Uploads -------------------------------------------------------------

    @property
    def uploads(self) -> tuple[UploadEntry, ...]:
        return tuple(self._uploads.values())

    def get_upload(self, filename: str) -> UploadEntry | None:
        return self._uploads.get(filename)

    def add_upload(self, entry: UploadEntry) -> None:
        """Add an entry; an existing entry with the same filename is replaced."""
        self._uploads = {**self._uploads, entry.filename: entry}

    def update_upload(self, filename: str, patch: UploadPatch) -> None:
        """Merge ``patch`` into the entry for ``filename``; no-op if it is gone."""
        entry = self._uploads.get(filename)
        if entry is None:
            return
        self._uploads = {**self._uploads, filename: merge_upload(entry, patch)}

    def remove_upload(self, filename: str) -> None:
        if filename in self._uploads:
            self._uploads = {k: v for k, v in self._uploads.items() if k != filename}

    def clear_uploads(self) -> None:
        self._uploads = {}

    # -- Analyses ------------------------------------------------------------

    @property
    def analyses(self) -> tuple[Analysis, ...]:
        return tuple(self._analyses.values())

    def get_analysis(self, analysis_id: str) -> Analysis | None:
        return self._analyses.get(analysis_id)

    def add_analysis(self, analysis: Analysis) -> None:
        self._analyses = {**self._analyses, analysis.id: analysis}

    def update_analysis(self, analysis_id: str, patch: AnalysisPatch) -> None:
        analysis = self._analyses.get(analysis_id)
        if analysis is None:
            return
        self._analyses = {**self._analyses, analysis_id: apply_patch(analysis, patch)}

    def remove_analysis(self, analysis_id: str) -> None:
        if analysis_id in self._analyses:
            self._analyses = {k: v for k, v in self._analyses.items() if k != analysis_id}

    def clear_analyses(self) -> None:
        self._analyses = {}

    # -- UI flags ------------------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def error(self) -> str | None:
        return self._error

    def set_loading(self, loading: bool) -> None:
        self._is_loading = loading

    def set_error(self, error: str | None) -> None:
        self._error = error
