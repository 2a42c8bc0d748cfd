"""
Storage of uploaded files in the static directory served under /static.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Protocol
import logging
import os

from charwiki.filenames import sanitize_filename

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class UploadTooLarge(ValueError):
    """Raised when an upload exceeds the configured size limit."""

    def __init__(self, filename: str, limit: int):
        super().__init__(f"{filename} exceeds the {limit} byte upload limit")
        self.filename = filename
        self.limit = limit


@dataclass
class StoredUpload:
    """An upload written to the static directory."""

    original_name: str
    filename: str
    path: str
    content_type: Optional[str]
    size: int


class StaticFileStore(Protocol):
    """Defines the operations the API needs from the static file store."""

    def save(
        self, stream: BinaryIO, filename: str, content_type: Optional[str] = None
    ) -> StoredUpload:
        ...

    def path_for(self, filename: str) -> str:
        ...


def safe_name(filename: str) -> str:
    """Sanitizes ``filename`` and drops any directory components."""
    name = os.path.basename(sanitize_filename(filename).replace("\\", "/"))
    if name in ("", ".", ".."):
        raise ValueError(f"invalid upload filename: {filename!r}")
    return name


@dataclass
class LocalStaticStore:
    """Writes uploads to a directory on local disk."""

    root: str
    max_file_size: Optional[int] = None

    def __post_init__(self):
        Path(self.root).mkdir(parents=True, exist_ok=True)

    def path_for(self, filename: str) -> str:
        return os.path.join(self.root, filename)

    def save(
        self, stream: BinaryIO, filename: str, content_type: Optional[str] = None
    ) -> StoredUpload:
        name = safe_name(filename)
        dest = self.path_for(name)
        size = 0
        try:
            with open(dest, "wb") as out:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if self.max_file_size is not None and size > self.max_file_size:
                        raise UploadTooLarge(name, self.max_file_size)
                    out.write(chunk)
        except UploadTooLarge:
            os.remove(dest)
            raise
        logger.info("Stored upload %s (%d bytes)", name, size)
        return StoredUpload(
            original_name=filename,
            filename=name,
            path=dest,
            content_type=content_type,
            size=size,
        )
