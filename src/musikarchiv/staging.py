"""Holding area for uploaded files.

Uploads are written to a staging directory outside the library root first
and only moved into an album folder once the whole request has been
validated, so a scan never sees a half-written file inside an album.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import time
import unicodedata
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

import aiofiles
import aiofiles.os
from aiofiles.os import wrap

from musikarchiv.errors import InvalidInputError

logger = logging.getLogger(__name__)

_COPY_CHUNK_SIZE = 1024 * 1024

_FORBIDDEN_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
_WHITESPACE = re.compile(r"\s+")

move = wrap(shutil.move)
rmtree = wrap(shutil.rmtree)


def sanitize_name(value: str | None) -> str:
    """Turn a display name into a filesystem-safe folder or file name.

    Control and path-delimiter characters are dropped, whitespace runs become
    ``_`` and leading dots are removed so the result is never a hidden name.
    Returns ``""`` if nothing usable is left.
    """
    if not isinstance(value, str):
        return ""
    normalized = unicodedata.normalize("NFKC", value).strip()
    cleaned = _WHITESPACE.sub("_", _FORBIDDEN_CHARS.sub("", normalized).strip())
    return cleaned.lstrip(".")


@dataclass
class Upload:
    """A file received from a client: its original name and its bytes."""

    filename: str
    content: bytes | BinaryIO

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()


@dataclass(frozen=True)
class StagedFile:
    original_name: str
    path: Path

    @property
    def extension(self) -> str:
        return Path(self.original_name).suffix.lower()


class StagingArea:
    """A directory holding uploads until they are placed into an album."""

    def __init__(self, directory: str | Path | None = None) -> None:
        self._owned = directory is None
        if directory is None:
            directory = tempfile.mkdtemp(prefix="musikarchiv-staging-")
        self._directory = Path(directory).absolute()
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def check_outside(self, root: Path) -> None:
        """Refuse a staging directory that lives inside the library *root*."""
        root = root.absolute()
        if self._directory == root or root in self._directory.parents:
            raise InvalidInputError(
                f"Staging directory {self._directory} is inside the library root {root}",
                "Configure a staging-dir outside the library",
            )

    async def stage(self, upload: Upload) -> StagedFile:
        """Write *upload* to a fresh file in the staging directory."""
        target = self._directory / f"{uuid.uuid4().hex}{upload.extension}"
        staged = StagedFile(upload.filename, target)
        try:
            async with aiofiles.open(target, "wb") as out:
                if isinstance(upload.content, (bytes, bytearray)):
                    await out.write(upload.content)
                else:
                    while chunk := upload.content.read(_COPY_CHUNK_SIZE):
                        await out.write(chunk)
        except BaseException:
            await self.discard([staged])
            raise
        return staged

    async def stage_all(self, uploads: list[Upload]) -> list[StagedFile]:
        staged: list[StagedFile] = []
        try:
            for upload in uploads:
                staged.append(await self.stage(upload))
        except BaseException:
            await self.discard(staged)
            raise
        return staged

    async def discard(self, staged: list[StagedFile]) -> None:
        """Remove staged files that are still in the staging directory."""
        for item in staged:
            try:
                await aiofiles.os.remove(item.path)
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning("Failed to clean up staged file %s: %s", item.path, exc)

    async def close(self) -> None:
        """Remove the staging directory if it was created here."""
        if not self._owned:
            return
        try:
            await rmtree(os.fspath(self._directory))
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove staging directory %s: %s", self._directory, exc)


async def unique_target(folder: Path, base_name: str, extension: str) -> Path:
    """Return a path in *folder* for ``base_name + extension`` that is not taken.

    On collision a millisecond timestamp is appended, then a counter.
    """
    candidate = folder / f"{base_name}{extension}"
    if not await aiofiles.os.path.exists(candidate):
        return candidate
    timestamp = int(time.time() * 1000)
    candidate = folder / f"{base_name}-{timestamp}{extension}"
    counter = 1
    while await aiofiles.os.path.exists(candidate):
        candidate = folder / f"{base_name}-{timestamp}-{counter}{extension}"
        counter += 1
    return candidate


async def place_track(staged: StagedFile, folder: Path) -> Path:
    """Move a staged audio file into *folder* under a collision-safe name."""
    base = sanitize_name(Path(staged.original_name).stem) or "file"
    target = await unique_target(folder, base, staged.extension)
    await move(os.fspath(staged.path), os.fspath(target))
    return target


async def place_cover(staged: StagedFile, folder: Path) -> Path:
    """Move a staged cover into *folder* as ``cover.jpg`` or ``cover.png``.

    ``.jpeg`` is stored as ``.jpg``.  An existing cover of the same name is
    replaced.
    """
    extension = ".jpg" if staged.extension == ".jpeg" else staged.extension
    target = folder / f"cover{extension}"
    await move(os.fspath(staged.path), os.fspath(target))
    return target
