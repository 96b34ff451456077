"""Transport-agnostic query and mutation surface over the library.

:class:`Catalog` ties the index, the mutation pipeline and the streaming
service together and returns plain dictionaries ready for JSON encoding.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from musikarchiv.config import Config
from musikarchiv.errors import NotFoundError
from musikarchiv.index import LibraryIndex
from musikarchiv.models import Album
from musikarchiv.mutations import MutationPipeline
from musikarchiv.staging import StagingArea, Upload
from musikarchiv.streaming import TrackStream, open_track_stream, resolve_cover


def album_summary(album: Album) -> dict[str, Any]:
    return {
        "id": album.id,
        "title": album.title,
        "description": album.description,
        "cover": album.cover_file_name,
        "track_count": album.track_count,
    }


def album_detail(album: Album) -> dict[str, Any]:
    detail = album_summary(album)
    detail["tracks"] = [
        {
            "id": track.id,
            "album_id": track.album_id,
            "title": track.title,
            "order": track.order,
            "duration": track.duration,
        }
        for track in album.tracks
    ]
    return detail


class Catalog:
    """Albums and tracks of one library root."""

    def __init__(self, index: LibraryIndex, pipeline: MutationPipeline) -> None:
        self._index = index
        self._pipeline = pipeline

    @classmethod
    def from_config(cls, config: Config) -> Catalog:
        index = LibraryIndex(config.library_root)
        staging = StagingArea(config.staging_dir)
        return cls(index, MutationPipeline(index, staging))

    @property
    def index(self) -> LibraryIndex:
        return self._index

    async def start(self) -> list[dict[str, Any]]:
        """Run the initial scan."""
        return await self.rescan()

    # -- queries ---------------------------------------------------------------

    async def list_albums(self) -> list[dict[str, Any]]:
        snapshot = await self._index.ready()
        return [album_summary(album) for album in snapshot.list_albums()]

    async def get_album(self, album_id: str) -> dict[str, Any]:
        album = (await self._index.ready()).get_album(album_id)
        if album is None:
            raise NotFoundError(f"Album '{album_id}' not found")
        return album_detail(album)

    async def stream_track(self, track_id: str, range_header: str | None = None) -> TrackStream:
        return await open_track_stream(self._index, track_id, range_header)

    async def cover_path(self, album_id: str, file_name: str) -> Path:
        return await resolve_cover(self._index, album_id, file_name)

    async def rescan(self) -> list[dict[str, Any]]:
        return [album_summary(album) for album in await self._pipeline.rescan()]

    # -- mutations -------------------------------------------------------------

    async def create_album(
        self,
        name: str,
        tracks: list[Upload],
        *,
        description: str | None = None,
        cover: Upload | None = None,
    ) -> dict[str, Any]:
        album = await self._pipeline.create_album(
            name, tracks, description=description, cover=cover
        )
        return album_detail(album)

    async def add_tracks(self, album_id: str, tracks: list[Upload]) -> dict[str, Any]:
        return album_detail(await self._pipeline.add_tracks(album_id, tracks))

    async def delete_track(self, album_id: str, track_id: str) -> dict[str, Any]:
        album = await self._pipeline.delete_track(album_id, track_id)
        if album is None:
            return {"message": "Track deleted, album removed"}
        return album_detail(album)

    async def delete_album(self, album_id: str) -> dict[str, Any]:
        await self._pipeline.delete_album(album_id)
        return {"message": "Album deleted"}

    async def close(self) -> None:
        """Release the staging area; the library itself is left untouched."""
        await self._pipeline.close()
