"""Shared fixtures: a small album library on disk."""

from __future__ import annotations

import json

import pytest

from musikarchiv.index import LibraryIndex
from musikarchiv.mutations import MutationPipeline
from musikarchiv.staging import StagingArea


@pytest.fixture()
def library_root(tmp_path):
    """Create a fake library with two albums."""
    root = tmp_path / "library"
    root.mkdir()

    album_a = root / "Album_A"
    album_a.mkdir()
    (album_a / "a.mp3").write_bytes(b"A" * 10)
    (album_a / "b.mp3").write_bytes(b"B" * 10)
    (album_a / "album.json").write_text(
        json.dumps({"title": "Album A", "tracks": [{"file": "b.mp3"}, {"file": "a.mp3"}]})
    )

    album_b = root / "Album_B"
    album_b.mkdir()
    (album_b / "only.flac").write_bytes(b"F" * 10)
    (album_b / "Cover.JPG").write_bytes(b"jpeg")

    return root


@pytest.fixture()
def index(library_root):
    return LibraryIndex(library_root)


@pytest.fixture()
def staging(tmp_path):
    return StagingArea(tmp_path / "staging")


@pytest.fixture()
def pipeline(index, staging):
    return MutationPipeline(index, staging)
