"""Create, extend and delete albums on disk, then rebuild the index.

Every operation validates its input before touching the filesystem, stages
uploads outside the library, moves them into place, and finally requests a
full index rebuild.  A failed operation removes whatever it created before
the error propagates, and staged files never outlive the request.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import aiofiles.os

from musikarchiv.errors import (
    ConflictError,
    IOFailureError,
    InvalidInputError,
    NotFoundError,
)
from musikarchiv.index import LibraryIndex
from musikarchiv.metadata import write_album_description
from musikarchiv.models import Album
from musikarchiv.reconcile import AUDIO_EXTENSIONS
from musikarchiv.staging import (
    StagedFile,
    StagingArea,
    Upload,
    place_cover,
    place_track,
    rmtree,
    sanitize_name,
)

logger = logging.getLogger(__name__)

COVER_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg", ".png"})


def _check_tracks(tracks: list[Upload]) -> None:
    if not tracks:
        raise InvalidInputError("At least one track is required")
    for upload in tracks:
        if upload.extension not in AUDIO_EXTENSIONS:
            raise InvalidInputError(
                f"Unsupported file type: {upload.extension or upload.filename}",
                f"Supported types: {', '.join(sorted(AUDIO_EXTENSIONS))}",
            )


def _check_cover(cover: Upload | None) -> None:
    if cover is not None and cover.extension not in COVER_EXTENSIONS:
        raise InvalidInputError(
            "Unsupported cover file type",
            f"Supported types: {', '.join(sorted(COVER_EXTENSIONS))}",
        )


class MutationPipeline:
    """Applies album mutations below the index root."""

    def __init__(self, index: LibraryIndex, staging: StagingArea) -> None:
        staging.check_outside(index.root)
        self._index = index
        self._staging = staging

    @property
    def root(self) -> Path:
        return self._index.root

    async def create_album(
        self,
        name: str,
        tracks: list[Upload],
        *,
        description: str | None = None,
        cover: Upload | None = None,
    ) -> Album:
        """Create a new album folder from uploads and return the indexed album.

        Raises :class:`InvalidInputError` for a blank or unusable name, no
        tracks, or unsupported file types, and :class:`ConflictError` if the
        album folder exists.
        """
        if not name or not name.strip():
            raise InvalidInputError("Album name is required")
        album_id = sanitize_name(name)
        if not album_id:
            raise InvalidInputError("Album name is invalid")
        _check_tracks(tracks)
        _check_cover(cover)

        folder = self.root / album_id
        if await aiofiles.os.path.exists(folder):
            raise ConflictError(album_id)

        staged_cover: list[StagedFile] = []
        staged_tracks: list[StagedFile] = []
        created = False
        try:
            if cover is not None:
                staged_cover = await self._staging.stage_all([cover])
            staged_tracks = await self._staging.stage_all(tracks)

            try:
                # exclusive: of two concurrent creates only one gets the folder
                await aiofiles.os.mkdir(folder)
            except FileExistsError:
                raise ConflictError(album_id) from None
            created = True

            for staged in staged_cover:
                await place_cover(staged, folder)
            for staged in staged_tracks:
                await place_track(staged, folder)
            await write_album_description(
                folder, name.strip(), description.strip() if description else None
            )
        except OSError as exc:
            logger.exception("Failed to create album %s", album_id)
            if created:
                await self._remove_folder(folder)
            raise IOFailureError(f"Failed to create album '{album_id}': {exc}") from exc
        except BaseException:
            if created:
                await self._remove_folder(folder)
            raise
        finally:
            await self._staging.discard(staged_cover + staged_tracks)

        snapshot = await self._index.rebuild()
        album = snapshot.get_album(album_id)
        if album is None:
            logger.error("Album %s did not show up in the index, removing %s", album_id, folder)
            await self._remove_folder(folder)
            await self._index.rebuild()
            raise IOFailureError(f"Album '{album_id}' was created but did not show up in the index")
        logger.info("Created album %s with %d tracks", album_id, album.track_count)
        return album

    async def add_tracks(self, album_id: str, tracks: list[Upload]) -> Album:
        """Add uploaded tracks to an existing album and return it re-indexed."""
        album = (await self._index.ready()).get_album(album_id)
        if album is None:
            raise NotFoundError(f"Album '{album_id}' not found")
        _check_tracks(tracks)

        folder = album.folder_path
        if not await aiofiles.os.path.isdir(folder):
            raise NotFoundError(f"Album folder for '{album_id}' is gone")

        staged: list[StagedFile] = []
        placed: list[Path] = []
        try:
            staged = await self._staging.stage_all(tracks)
            for item in staged:
                placed.append(await place_track(item, folder))
        except BaseException as exc:
            await self._remove_files(placed)
            if isinstance(exc, OSError):
                logger.exception("Failed to add tracks to %s", album_id)
                raise IOFailureError(
                    f"Failed to add tracks to '{album_id}': {exc}"
                ) from exc
            raise
        finally:
            await self._staging.discard(staged)

        snapshot = await self._index.rebuild()
        updated = snapshot.get_album(album_id)
        if updated is None:
            raise NotFoundError(f"Album '{album_id}' not found")
        logger.info("Added %d tracks to album %s", len(placed), album_id)
        return updated

    async def delete_track(self, album_id: str, track_id: str) -> Album | None:
        """Delete one track file.

        Returns the re-indexed album, or ``None`` if that was its last track
        and the album dropped out of the index.
        """
        track = (await self._index.ready()).get_track(track_id)
        if track is None or track.album_id != album_id:
            raise NotFoundError(f"Track '{track_id}' not found in album '{album_id}'")

        try:
            await aiofiles.os.remove(track.file_path)
        except FileNotFoundError:
            logger.info("Track file %s was already gone", track.file_path)
        except OSError as exc:
            logger.exception("Failed to delete track %s", track_id)
            raise IOFailureError(f"Failed to delete track '{track_id}': {exc}") from exc

        snapshot = await self._index.rebuild()
        return snapshot.get_album(album_id)

    async def delete_album(self, album_id: str) -> None:
        album = (await self._index.ready()).get_album(album_id)
        if album is None:
            raise NotFoundError(f"Album '{album_id}' not found")
        try:
            await rmtree(os.fspath(album.folder_path))
        except FileNotFoundError:
            logger.info("Album folder %s was already gone", album.folder_path)
        except OSError as exc:
            logger.exception("Failed to delete album %s", album_id)
            raise IOFailureError(f"Failed to delete album '{album_id}': {exc}") from exc
        await self._index.rebuild()
        logger.info("Deleted album %s", album_id)

    async def rescan(self) -> list[Album]:
        snapshot = await self._index.rebuild()
        return snapshot.list_albums()

    async def close(self) -> None:
        await self._staging.close()

    # -- cleanup ---------------------------------------------------------------

    async def _remove_folder(self, folder: Path) -> None:
        try:
            await rmtree(os.fspath(folder))
        except OSError as exc:
            logger.warning("Failed to remove partially created album %s: %s", folder, exc)

    async def _remove_files(self, paths: list[Path]) -> None:
        for path in paths:
            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning("Failed to remove partially added track %s: %s", path, exc)
