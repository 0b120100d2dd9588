"""Local media references.

SourceFile describes a file submitted for upload; MediaBlob is the byte
payload actually transmitted (the original file, a re-encode, or an
in-memory thumbnail).
"""

import asyncio
import mimetypes
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".webm", ".mkv", ".wmv", ".flv", ".m4v"}


@dataclass(frozen=True)
class SourceFile:
    """Immutable reference to a local file submitted for upload.

    Attributes:
        path: Local path
        name: File name sent to the authorization service
        size_bytes: Size on disk
        content_type: MIME type
    """

    path: Path
    name: str
    size_bytes: int
    content_type: str

    @classmethod
    def from_path(cls, path: Path | str, content_type: str | None = None) -> "SourceFile":
        """Build a SourceFile from a local path.

        Args:
            path: Local file path
            content_type: MIME type override (guessed from the name otherwise)

        Returns:
            SourceFile describing the file

        Raises:
            FileNotFoundError: If the path is not a regular file
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Not a file: {path}")

        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            path=path,
            name=path.name,
            size_bytes=path.stat().st_size,
            content_type=content_type or guessed or "application/octet-stream",
        )

    @property
    def is_video(self) -> bool:
        """Whether the file looks like a video."""
        return (
            self.content_type.startswith("video/")
            or self.path.suffix.lower() in VIDEO_EXTENSIONS
        )


@dataclass
class MediaBlob:
    """Bytes to transmit, backed by a file or held in memory.

    Attributes:
        name: File name
        content_type: MIME type sent as Content-Type
        size_bytes: Exact byte length
        path: Backing file, if any
        data: In-memory bytes, if any
    """

    name: str
    content_type: str
    size_bytes: int
    path: Path | None = None
    data: bytes | None = None

    def __post_init__(self) -> None:
        if (self.path is None) == (self.data is None):
            raise ValueError("MediaBlob needs exactly one of path or data")

    @classmethod
    def from_source(cls, source: SourceFile) -> "MediaBlob":
        """Wrap the original file unchanged."""
        return cls(
            name=source.name,
            content_type=source.content_type,
            size_bytes=source.size_bytes,
            path=source.path,
        )

    @classmethod
    def from_bytes(cls, data: bytes, name: str, content_type: str) -> "MediaBlob":
        """Wrap in-memory bytes."""
        return cls(name=name, content_type=content_type, size_bytes=len(data), data=data)

    async def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        """Yield the blob content in chunks of at most chunk_size bytes.

        Args:
            chunk_size: Maximum chunk length

        Yields:
            Successive byte chunks
        """
        if self.data is not None:
            for offset in range(0, len(self.data), chunk_size):
                yield self.data[offset : offset + chunk_size]
            return

        assert self.path is not None
        with self.path.open("rb") as fh:
            while True:
                chunk = await asyncio.to_thread(fh.read, chunk_size)
                if not chunk:
                    break
                yield chunk


__all__ = [
    "VIDEO_EXTENSIONS",
    "SourceFile",
    "MediaBlob",
]
