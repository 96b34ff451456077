"""Music library: discovers albums and tracks from the filesystem.

Expected directory layout::

    <root>/
        Album_A/
            album.json          (optional sidecar, see musikarchiv.metadata)
            cover.jpg           (optional)
            01 - First Track.mp3
            02 - Second Track.flac
        Album_B/
            song.wav
            ...

Each direct, non-hidden sub-directory of *root* holding at least one
recognised audio file is an album.  Track order comes from the sidecar where
it names existing files, then alphabetically (see musikarchiv.reconcile).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from aiofiles.os import wrap

from musikarchiv.metadata import METADATA_FILE_NAME, read_album_description
from musikarchiv.models import Album
from musikarchiv.reconcile import is_audio_file, reconcile_tracks

logger = logging.getLogger(__name__)

COVER_FILE_CANDIDATES: tuple[str, ...] = ("cover.jpg", "cover.png")


def _list_entries(path: str | Path) -> list[tuple[str, bool, bool]]:
    """Return ``(name, is_dir, is_file)`` for every entry of *path*."""
    with os.scandir(path) as it:
        return [(entry.name, entry.is_dir(), entry.is_file()) for entry in it]


list_entries = wrap(_list_entries)
makedirs = wrap(os.makedirs)


def find_cover_file(file_names: list[str]) -> str | None:
    """Return the first file matching a cover candidate, ignoring case."""
    by_lower = {}
    for name in file_names:
        by_lower.setdefault(name.lower(), name)
    for candidate in COVER_FILE_CANDIDATES:
        if candidate in by_lower:
            return by_lower[candidate]
    return None


async def scan_album(album_id: str, folder: Path) -> Album | None:
    """Build the :class:`Album` for *folder*.

    Returns ``None`` if the folder holds no audio files.  Raises ``OSError``
    if the folder cannot be listed.
    """
    entries = await list_entries(folder)
    file_names = [name for name, _is_dir, is_file in entries if is_file]

    description = await read_album_description(folder / METADATA_FILE_NAME)
    audio_files = [name for name in file_names if is_audio_file(name)]
    tracks = reconcile_tracks(album_id, folder, audio_files, description)
    if not tracks:
        return None

    cover = find_cover_file(file_names)
    return Album(
        id=album_id,
        title=description.title or album_id,
        description=description.description,
        folder_path=folder,
        cover_file_name=cover,
        cover_path=folder / cover if cover else None,
        tracks=tracks,
    )


async def scan_library(root: str | Path) -> list[Album]:
    """Scan every album folder below *root*, sorted by folder name.

    Folders that cannot be read are skipped with a warning.  If *root* itself
    cannot be listed the result is empty.
    """
    root = Path(root).absolute()
    try:
        await makedirs(root, exist_ok=True)
        entries = await list_entries(root)
    except OSError as exc:
        logger.error("Failed to read library root %s: %s", root, exc)
        return []

    albums = []
    for name, is_dir, _is_file in sorted(entries):
        if not is_dir or name.startswith("."):
            continue
        folder = root / name
        try:
            album = await scan_album(name, folder)
        except OSError as exc:
            logger.warning("Unable to read album folder %s: %s", folder, exc)
            continue
        if album is not None:
            albums.append(album)
    return albums
