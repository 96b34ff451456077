"""Immutable records describing albums, tracks and sidecar descriptions.

Records are produced wholesale by one library scan and never edited in
place; a rescan replaces them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class TrackEntry:
    """One normalized ``tracks`` entry of an ``album.json`` sidecar."""

    file: str | None = None
    title: str | None = None
    duration: float | None = None
    order: float | None = None


@dataclass(frozen=True)
class AlbumDescription:
    """Normalized content of an ``album.json`` sidecar."""

    title: str | None = None
    description: str | None = None
    tracks: tuple[TrackEntry, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.title is None and self.description is None and not self.tracks


@dataclass(frozen=True)
class Track:
    id: str
    album_id: str
    file_name: str
    file_path: Path
    title: str
    order: float
    duration: float | None = None


@dataclass(frozen=True)
class Album:
    id: str
    title: str
    folder_path: Path
    description: str | None = None
    cover_file_name: str | None = None
    cover_path: Path | None = None
    tracks: tuple[Track, ...] = field(default_factory=tuple)

    @property
    def track_count(self) -> int:
        return len(self.tracks)


def make_track_id(album_id: str, file_name: str) -> str:
    """Return the index-wide unique id of *file_name* inside *album_id*."""
    return f"{album_id}:{file_name}"
