"""Serve track bytes, honouring single byte-range requests.

:func:`open_track_stream` resolves a track through the index, stats its file
and returns a :class:`TrackStream`: status, headers and an async iterator
over exactly the requested bytes.  The file is opened lazily by
:meth:`TrackStream.iter_bytes` and closed as soon as the iterator finishes
or is closed by a disconnecting client.
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path

import aiofiles
import aiofiles.os

from musikarchiv.errors import IOFailureError, NotFoundError
from musikarchiv.index import LibraryIndex

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

MIME_TYPES: dict[str, str] = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".flac": "audio/flac",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}
DEFAULT_MIME_TYPE = "application/octet-stream"


def media_type_for(path: str | Path) -> str:
    return MIME_TYPES.get(Path(path).suffix.lower(), DEFAULT_MIME_TYPE)


def _parse_offset(text: str) -> int | None:
    text = text.strip()
    # str.isdigit also accepts superscripts and other non-ASCII digits
    if not (text.isascii() and text.isdigit()):
        return None
    return int(text)


def parse_byte_range(header: str, size: int) -> tuple[int, int]:
    """Return the inclusive ``(start, end)`` span requested by *header*.

    Only the ``bytes=start-end`` form is understood, and of a multi-range
    header only the first range.  A missing or unparseable start means 0; a
    missing, unparseable or too large end means ``size - 1``.  If the start
    ends up past the end, the start is reset to 0.
    """
    spec = header.strip()
    if spec.lower().startswith("bytes="):
        spec = spec[len("bytes="):]
    spec = spec.split(",", 1)[0]
    start_text, _, end_text = spec.partition("-")

    start = _parse_offset(start_text)
    if start is None:
        start = 0
    end = _parse_offset(end_text)
    if end is None or end >= size:
        end = size - 1
    if start > end:
        start = 0
    return start, end


@dataclass
class TrackStream:
    """Response for one stream request."""

    path: Path
    size: int
    start: int
    end: int
    partial: bool
    media_type: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return 206 if self.partial else 200

    @property
    def content_length(self) -> int:
        return self.end - self.start + 1

    async def iter_bytes(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        remaining = self.content_length
        async with aiofiles.open(self.path, "rb") as f:
            if self.start:
                await f.seek(self.start)
            while remaining > 0:
                chunk = await f.read(min(chunk_size, remaining))
                if not chunk:
                    # file shrank since it was stat'ed
                    logger.warning("Unexpected end of file in %s", self.path)
                    break
                remaining -= len(chunk)
                yield chunk


async def _stat_regular_file(path: Path, what: str) -> os.stat_result:
    try:
        info = await aiofiles.os.stat(path)
    except (FileNotFoundError, NotADirectoryError):
        raise NotFoundError(f"{what} file missing: {path.name}") from None
    except OSError as exc:
        logger.error("Failed to stat %s: %s", path, exc)
        raise IOFailureError(f"Cannot read {what.lower()} file {path.name}: {exc}") from exc
    if not stat.S_ISREG(info.st_mode):
        raise NotFoundError(f"{what} file missing: {path.name}")
    return info


async def open_track_stream(
    index: LibraryIndex, track_id: str, range_header: str | None = None
) -> TrackStream:
    """Prepare the response for streaming *track_id*.

    Raises :class:`NotFoundError` if the track is not indexed or its file is
    gone or not a regular file.
    """
    snapshot = await index.ready()
    track = snapshot.get_track(track_id)
    if track is None:
        raise NotFoundError(f"Track '{track_id}' not found")

    info = await _stat_regular_file(track.file_path, "Track")
    size = info.st_size
    media_type = media_type_for(track.file_path)

    if not range_header or size == 0:
        return TrackStream(
            path=track.file_path,
            size=size,
            start=0,
            end=size - 1,
            partial=False,
            media_type=media_type,
            headers={
                "Content-Length": str(size),
                "Content-Type": media_type,
                "Accept-Ranges": "bytes",
            },
        )

    start, end = parse_byte_range(range_header, size)
    return TrackStream(
        path=track.file_path,
        size=size,
        start=start,
        end=end,
        partial=True,
        media_type=media_type,
        headers={
            "Content-Range": f"bytes {start}-{end}/{size}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(end - start + 1),
            "Content-Type": media_type,
        },
    )


async def resolve_cover(index: LibraryIndex, album_id: str, file_name: str) -> Path:
    """Return the cover path of *album_id* if its cover is named *file_name*."""
    snapshot = await index.ready()
    album = snapshot.get_album(album_id)
    if album is None or album.cover_path is None or album.cover_file_name != file_name:
        raise NotFoundError(f"No cover '{file_name}' for album '{album_id}'")
    await _stat_regular_file(album.cover_path, "Cover")
    return album.cover_path
