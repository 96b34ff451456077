"""Reading and writing the optional ``album.json`` sidecar of an album.

The sidecar is a JSON object::

    {
        "title": "Kind of Blue",
        "description": "1959, Columbia",
        "tracks": [
            {"file": "01 So What.flac", "title": "So What", "duration": 562},
            {"filename": "02 Freddie.flac", "order": 2}
        ]
    }

Every key is optional.  Track entries may name their file and title under
several equivalent keys (see :data:`FILE_KEYS` and :data:`TITLE_KEYS`).  A
missing or malformed sidecar never fails a scan; it reads as an empty
description.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiofiles

from musikarchiv.models import AlbumDescription, TrackEntry

logger = logging.getLogger(__name__)

METADATA_FILE_NAME = "album.json"

# Accepted keys, highest priority first.
FILE_KEYS: tuple[str, ...] = ("file", "filename", "path", "name")
TITLE_KEYS: tuple[str, ...] = ("title", "displayName", "name", "label")


def _first_string(data: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    # the first key holding a non-empty value decides, even if that value is
    # whitespace or not a string; later aliases are not consulted
    for key in keys:
        value = data.get(key)
        if value is None or value is False or value == "" or value == 0:
            continue
        return value if isinstance(value, str) else None
    return None


def _number(value: Any) -> float | None:
    # bool is an int subclass but never a meaningful duration or position
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_track_entry(data: dict[str, Any]) -> TrackEntry:
    return TrackEntry(
        file=_first_string(data, FILE_KEYS),
        title=_first_string(data, TITLE_KEYS),
        duration=_number(data.get("duration")),
        order=_number(data.get("order")),
    )


def parse_album_description(data: Any) -> AlbumDescription:
    """Turn decoded sidecar JSON into an :class:`AlbumDescription`.

    Anything that is not a JSON object yields an empty description.  Fields
    of the wrong type are ignored individually.
    """
    if not isinstance(data, dict):
        return AlbumDescription()

    raw_tracks = data.get("tracks")
    tracks: tuple[TrackEntry, ...] = ()
    if isinstance(raw_tracks, list):
        tracks = tuple(
            parse_track_entry(entry) for entry in raw_tracks if isinstance(entry, dict)
        )

    return AlbumDescription(
        title=_text(data.get("title")),
        description=_text(data.get("description")),
        tracks=tracks,
    )


async def read_album_description(path: str | Path) -> AlbumDescription:
    """Load the sidecar at *path*.

    Returns an empty :class:`AlbumDescription` if the file does not exist,
    cannot be decoded, or does not hold a JSON object.
    """
    path = Path(path)
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            contents = await f.read()
    except FileNotFoundError:
        return AlbumDescription()
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Failed to read metadata at %s: %s", path, exc)
        return AlbumDescription()

    try:
        data = json.loads(contents)
    except (ValueError, RecursionError) as exc:
        # JSONDecodeError, oversized integers and too deeply nested documents
        logger.warning("Failed to parse metadata at %s: %s", path, exc)
        return AlbumDescription()

    if not isinstance(data, dict):
        logger.warning(
            "Ignoring metadata at %s: expected an object, got %s",
            path,
            type(data).__name__,
        )
        return AlbumDescription()

    return parse_album_description(data)


async def write_album_description(
    folder: str | Path,
    title: str | None = None,
    description: str | None = None,
) -> Path:
    """Write a minimal sidecar holding only *title* and *description*."""
    data: dict[str, str] = {}
    if title:
        data["title"] = title
    if description:
        data["description"] = description

    path = Path(folder) / METADATA_FILE_NAME
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(json.dumps(data, indent=2, ensure_ascii=False))
    return path
