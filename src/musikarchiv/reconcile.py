"""Reconcile the audio files of an album folder with its sidecar description.

The sidecar may be partial, stale or simply wrong.  The files on disk are
what counts: an entry only produces a track if the file it names exists, and
every audio file on disk produces exactly one track.

Ordering rules:

1. Files named by sidecar entries come first, in sidecar order.
2. Remaining files follow, sorted by file name.
3. Positions count from 1 over that sequence, unless the matching entry
   carries a numeric ``order``, which is used as-is.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from musikarchiv.models import AlbumDescription, Track, TrackEntry, make_track_id

AUDIO_EXTENSIONS: frozenset[str] = frozenset({".mp3", ".wav", ".flac"})


def is_audio_file(name: str) -> bool:
    return Path(name).suffix.lower() in AUDIO_EXTENSIONS


def normalize_filename(name: str | None) -> str:
    """Return the lookup key used to match sidecar entries to files."""
    if not isinstance(name, str):
        return ""
    return name.strip().casefold()


@dataclass(frozen=True)
class _Slot:
    file_name: str
    entry: TrackEntry | None


def order_files(
    audio_files: Iterable[str], description: AlbumDescription
) -> list[_Slot]:
    """Return the files in final track order, each with its bound entry."""
    files = [name for name in audio_files if is_audio_file(name)]
    lookup: dict[str, str] = {}
    for file_name in files:
        # two files differing only in case: the first one listed wins the key
        lookup.setdefault(normalize_filename(file_name), file_name)

    slots: list[_Slot] = []
    consumed: set[str] = set()

    for entry in description.tracks:
        key = normalize_filename(entry.file)
        if not key:
            continue
        actual = lookup.get(key)
        if actual is None or actual in consumed:
            continue
        slots.append(_Slot(actual, entry))
        consumed.add(actual)

    for file_name in sorted(f for f in files if f not in consumed):
        slots.append(_Slot(file_name, None))

    return slots


def reconcile_tracks(
    album_id: str,
    folder: Path,
    audio_files: Iterable[str],
    description: AlbumDescription,
) -> tuple[Track, ...]:
    """Build the ordered :class:`Track` records of one album."""
    tracks = []
    for position, slot in enumerate(order_files(audio_files, description), start=1):
        entry = slot.entry
        title = entry.title if entry is not None and entry.title else None
        order = entry.order if entry is not None and entry.order is not None else position
        tracks.append(
            Track(
                id=make_track_id(album_id, slot.file_name),
                album_id=album_id,
                file_name=slot.file_name,
                file_path=folder / slot.file_name,
                title=title or Path(slot.file_name).stem,
                order=order,
                duration=entry.duration if entry is not None else None,
            )
        )
    return tuple(tracks)
