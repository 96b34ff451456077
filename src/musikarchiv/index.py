"""In-memory index of the library, rebuilt wholesale from the filesystem.

The index holds one :class:`IndexSnapshot` at a time.  A snapshot is built
completely off to the side by a library scan and then published with a
single reference swap, so a reader either sees the previous pass or the new
one, never a mix.

Rebuilds go through a single-writer scheduler:

- :meth:`LibraryIndex.request_rebuild` returns a task resolving to the
  snapshot it published.  Rebuilds run one at a time, in request order, so
  the most recently requested rebuild is always the last one published.
- A request that arrives while another request is still waiting for its
  turn joins that waiting rebuild instead of queueing a second one; the
  waiting rebuild has not looked at the filesystem yet.
- :meth:`LibraryIndex.ready` waits for the most recent rebuild and returns
  the current snapshot.  Every read path goes through it.
- A rebuild that fails is logged and publishes nothing; the previous
  snapshot stays current and readable.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from musikarchiv.library import scan_library
from musikarchiv.models import Album, Track

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexSnapshot:
    """One complete library scan."""

    version: int = 0
    albums: Mapping[str, Album] = field(default_factory=lambda: MappingProxyType({}))
    tracks: Mapping[str, Track] = field(default_factory=lambda: MappingProxyType({}))

    def list_albums(self) -> list[Album]:
        return list(self.albums.values())

    def get_album(self, album_id: str) -> Album | None:
        return self.albums.get(album_id)

    def get_track(self, track_id: str) -> Track | None:
        return self.tracks.get(track_id)


def build_snapshot(albums: Iterable[Album], version: int) -> IndexSnapshot:
    """Index *albums* by id and their tracks by track id.

    An album whose id or any of whose track ids is already taken is left out
    with a warning, which keeps both lookups unique.
    """
    album_map: dict[str, Album] = {}
    track_map: dict[str, Track] = {}
    for album in albums:
        if album.id in album_map:
            logger.warning("Skipping duplicate album id %r", album.id)
            continue
        ids = [track.id for track in album.tracks]
        if len(set(ids)) != len(ids) or any(track_id in track_map for track_id in ids):
            logger.warning("Skipping album %r: track ids collide with another album", album.id)
            continue
        if any(track.album_id != album.id for track in album.tracks):
            logger.warning("Skipping album %r: tracks reference another album", album.id)
            continue
        album_map[album.id] = album
        for track in album.tracks:
            track_map[track.id] = track
    return IndexSnapshot(
        version=version,
        albums=MappingProxyType(album_map),
        tracks=MappingProxyType(track_map),
    )


class LibraryIndex:
    """Owns the current snapshot of the library below *root*."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).absolute()
        self._snapshot = IndexSnapshot()
        self._lock = asyncio.Lock()
        self._latest: asyncio.Task[IndexSnapshot] | None = None
        self._waiting: asyncio.Task[IndexSnapshot] | None = None
        self._issued = 0

    @property
    def root(self) -> Path:
        return self._root

    @property
    def snapshot(self) -> IndexSnapshot:
        """The last published snapshot, without waiting for rebuilds."""
        return self._snapshot

    def request_rebuild(self) -> asyncio.Task[IndexSnapshot]:
        """Schedule a full rescan and return a handle to its result."""
        if self._waiting is not None and not self._waiting.done():
            return self._waiting
        self._issued += 1
        task = asyncio.get_running_loop().create_task(self._run_rebuild(self._issued))
        self._waiting = task
        self._latest = task
        return task

    async def rebuild(self) -> IndexSnapshot:
        return await self.request_rebuild()

    async def ready(self) -> IndexSnapshot:
        """Wait for the most recently requested rebuild, if any."""
        latest = self._latest
        if latest is not None:
            try:
                await asyncio.shield(latest)
            except asyncio.CancelledError:
                if not latest.cancelled():
                    raise
        return self._snapshot

    async def _run_rebuild(self, version: int) -> IndexSnapshot:
        async with self._lock:
            if self._waiting is asyncio.current_task():
                self._waiting = None
            try:
                albums = await scan_library(self._root)
                snapshot = build_snapshot(albums, version)
            except Exception:
                logger.exception(
                    "Library rebuild failed, keeping index v%d", self._snapshot.version
                )
                return self._snapshot
            self._snapshot = snapshot
            logger.info(
                "Library index v%d: %d albums, %d tracks",
                snapshot.version,
                len(snapshot.albums),
                len(snapshot.tracks),
            )
            return snapshot
