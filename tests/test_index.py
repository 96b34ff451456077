"""Tests for the library index and its rebuild scheduler."""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path

import pytest

from musikarchiv import index as index_module
from musikarchiv.index import build_snapshot
from musikarchiv.models import Album, Track


def _album(album_id: str, *files: str) -> Album:
    folder = Path("/music") / album_id
    tracks = tuple(
        Track(
            id=f"{album_id}:{f}",
            album_id=album_id,
            file_name=f,
            file_path=folder / f,
            title=f,
            order=i,
        )
        for i, f in enumerate(files, start=1)
    )
    return Album(id=album_id, title=album_id, folder_path=folder, tracks=tracks)


class TestBuildSnapshot:
    def test_indexes_albums_and_tracks(self):
        snap = build_snapshot([_album("A", "1.mp3", "2.mp3"), _album("B", "1.mp3")], 3)
        assert snap.version == 3
        assert list(snap.albums) == ["A", "B"]
        assert set(snap.tracks) == {"A:1.mp3", "A:2.mp3", "B:1.mp3"}
        assert snap.get_track("B:1.mp3").album_id == "B"

    def test_colliding_track_ids_drop_later_album(self):
        clash = Album(
            id="A:x",
            title="clash",
            folder_path=Path("/music/A:x"),
            tracks=(
                Track(id="A:x:y.mp3", album_id="A:x", file_name="y.mp3",
                      file_path=Path("/music/A:x/y.mp3"), title="y", order=1),
            ),
        )
        first = _album("A", "x:y.mp3")
        snap = build_snapshot([first, clash], 1)
        assert list(snap.albums) == ["A"]

    def test_snapshot_is_read_only(self):
        snap = build_snapshot([_album("A", "1.mp3")], 1)
        with pytest.raises(TypeError):
            snap.albums["B"] = _album("B")


class TestLibraryIndex:
    async def test_starts_empty(self, index):
        snap = await index.ready()
        assert snap.version == 0
        assert not snap.albums and not snap.tracks
        assert snap.list_albums() == []

    async def test_rebuild_publishes_snapshot(self, index):
        snap = await index.rebuild()
        assert [a.id for a in snap.list_albums()] == ["Album_A", "Album_B"]
        assert index.snapshot is snap
        assert snap.get_album("Album_A").track_count == 2

    async def test_versions_increase(self, index):
        first = await index.rebuild()
        second = await index.rebuild()
        assert second.version > first.version

    async def test_rescan_idempotent(self, index):
        first = await index.rebuild()
        second = await index.rebuild()
        assert list(first.albums) == list(second.albums)
        assert list(first.tracks) == list(second.tracks)

    async def test_ready_waits_for_pending_rebuild(self, index):
        index.request_rebuild()
        snap = await index.ready()
        assert len(snap.albums) == 2

    async def test_readers_never_see_partial_pass(self, index, library_root, monkeypatch):
        await index.rebuild()
        before = index.snapshot
        release = asyncio.Event()
        real_scan = index_module.scan_library

        async def slow_scan(root):
            albums = await real_scan(root)
            await release.wait()
            return albums

        monkeypatch.setattr(index_module, "scan_library", slow_scan)
        shutil.rmtree(library_root / "Album_B")
        handle = index.request_rebuild()
        await asyncio.sleep(0)

        # mid-rebuild the old pass is still complete and visible
        assert index.snapshot is before
        assert set(index.snapshot.albums) == {"Album_A", "Album_B"}

        reader = asyncio.create_task(index.ready())
        await asyncio.sleep(0)
        assert not reader.done()

        release.set()
        after = await reader
        assert after is await handle
        assert set(after.albums) == {"Album_A"}

    async def test_rebuilds_run_one_at_a_time_in_request_order(self, index, monkeypatch):
        running = 0
        peak = 0
        calls = []

        async def tracking_scan(root):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            calls.append(running)
            await asyncio.sleep(0.01)
            running -= 1
            return []

        monkeypatch.setattr(index_module, "scan_library", tracking_scan)
        first = index.request_rebuild()
        await asyncio.sleep(0)
        second = index.request_rebuild()
        third = index.request_rebuild()

        results = await asyncio.gather(first, second, third)
        assert peak == 1
        # second and third were both waiting, so they share one scan
        assert second is third
        assert len(calls) == 2
        assert index.snapshot is results[-1]
        assert results[0].version < results[-1].version

    async def test_last_requested_rebuild_is_published_last(self, index, library_root):
        first = index.request_rebuild()
        await asyncio.sleep(0)
        (library_root / "Album_C").mkdir()
        (library_root / "Album_C" / "c.wav").touch()
        second = index.request_rebuild()
        await asyncio.gather(first, second)
        assert "Album_C" in index.snapshot.albums
        assert index.snapshot is second.result()

    async def test_failed_rebuild_keeps_previous_snapshot(self, index, monkeypatch, caplog):
        before = await index.rebuild()

        async def broken_scan(root):
            raise ValueError("boom")

        monkeypatch.setattr(index_module, "scan_library", broken_scan)
        with caplog.at_level(logging.ERROR):
            result = await index.rebuild()
        assert result is before
        assert await index.ready() is before
        assert "Library rebuild failed" in caplog.text

        monkeypatch.undo()
        after = await index.rebuild()
        assert after.version > before.version
        assert set(after.albums) == {"Album_A", "Album_B"}

    async def test_oversized_sidecar_number_does_not_break_ready(self, index, library_root):
        (library_root / "Album_A" / "album.json").write_text(
            '{"tracks": [{"file": "a.mp3", "order": ' + "9" * 5000 + "}]}"
        )
        snap = await index.rebuild()
        assert await index.ready() is snap
        assert set(snap.albums) == {"Album_A", "Album_B"}
