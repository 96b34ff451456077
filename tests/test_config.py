"""Tests for musikarchiv.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from musikarchiv.config import LIBRARY_ROOT_ENV, Config, load_config


@pytest.fixture(autouse=True)
def _no_env_root(monkeypatch):
    monkeypatch.delenv(LIBRARY_ROOT_ENV, raising=False)


def test_load_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "nonexistent.toml")
    assert cfg == Config()


def test_load_config_empty_file(tmp_path: Path) -> None:
    p = tmp_path / "empty.toml"
    p.write_text("")
    cfg = load_config(p)
    assert cfg == Config()


def test_load_config_full(tmp_path: Path) -> None:
    p = tmp_path / "musikarchiv.toml"
    p.write_text(
        'library-root = "/srv/albums"\n'
        'staging-dir = "/srv/staging"\n'
        'log-level = "debug"\n'
    )
    cfg = load_config(p)
    assert cfg.library_root == "/srv/albums"
    assert cfg.staging_dir == "/srv/staging"
    assert cfg.log_level == "DEBUG"


def test_load_config_partial(tmp_path: Path) -> None:
    p = tmp_path / "musikarchiv.toml"
    p.write_text('library-root = "/data/music"\n')
    cfg = load_config(p)
    assert cfg.library_root == "/data/music"
    assert cfg.staging_dir is None
    assert cfg.log_level == "INFO"


def test_env_overrides_library_root(tmp_path: Path, monkeypatch) -> None:
    p = tmp_path / "musikarchiv.toml"
    p.write_text('library-root = "/data/music"\n')
    monkeypatch.setenv(LIBRARY_ROOT_ENV, "/mnt/albums")
    assert load_config(p).library_root == "/mnt/albums"


def test_blank_env_is_ignored(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv(LIBRARY_ROOT_ENV, "  ")
    assert load_config(tmp_path / "none.toml").library_root == Config.library_root
