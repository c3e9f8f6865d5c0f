"""Revocable preview references for uploads in progress."""

from __future__ import annotations

import logging
import uuid

logger = logging.getLogger(__name__)


class PreviewRegistry:
    """Hands out opaque ``preview:<uuid>`` handles that resolve to their source.

    A handle stays live until revoked; whoever removes the owning upload entry
    must revoke it.
    """

    def __init__(self) -> None:
        self._sources: dict[str, object] = {}

    def create(self, source: object) -> str:
        handle = f"preview:{uuid.uuid4()}"
        self._sources[handle] = source
        return handle

    def resolve(self, handle: str) -> object | None:
        return self._sources.get(handle)

    def revoke(self, handle: str) -> None:
        """Release a handle. Revoking an unknown or already revoked handle is a no-op."""
        if self._sources.pop(handle, None) is not None:
            logger.debug("Revoked %s", handle)

    @property
    def active_count(self) -> int:
        return len(self._sources)
