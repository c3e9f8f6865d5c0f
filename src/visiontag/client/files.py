"""Image sources the upload client can read from."""

from __future__ import annotations

import asyncio
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

# Missing from the mimetypes table before Python 3.13.
mimetypes.add_type("image/webp", ".webp")


class ImageFile(Protocol):
    """A selected file: name, declared media type, size, and one awaitable read."""

    @property
    def name(self) -> str: ...

    @property
    def media_type(self) -> str: ...

    @property
    def size(self) -> int: ...

    async def read(self) -> bytes:
        """Return the full file content.

        Raises:
            OSError: If the content cannot be read.
        """
        ...


@dataclass(frozen=True)
class LocalImageFile:
    """An image on the local filesystem; media type guessed from the extension."""

    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def media_type(self) -> str:
        guessed, _ = mimetypes.guess_type(self.path.name)
        return guessed or "application/octet-stream"

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    async def read(self) -> bytes:
        return await asyncio.to_thread(self.path.read_bytes)


@dataclass(frozen=True)
class MemoryImageFile:
    """An image already held in memory."""

    name: str
    media_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    async def read(self) -> bytes:
        return self.data
