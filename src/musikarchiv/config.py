"""Load musikarchiv configuration from a TOML file."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CONFIG_PATH = Path("/etc/musikarchiv.toml")
LIBRARY_ROOT_ENV = "MUSIKARCHIV_LIBRARY_ROOT"


@dataclass
class Config:
    """Musikarchiv configuration."""

    library_root: str = "library"
    staging_dir: str | None = None
    log_level: str = "INFO"


def load_config(path: Path | str) -> Config:
    """Load configuration from a TOML file.

    Returns a :class:`Config` with defaults for any missing keys.
    If the file does not exist, returns a default :class:`Config`.
    ``MUSIKARCHIV_LIBRARY_ROOT`` overrides the library root from the file.
    """
    path = Path(path)
    data = {}
    if path.is_file():
        with open(path, "rb") as f:
            data = tomllib.load(f)

    library_root = data.get("library-root", Config.library_root)
    env_root = os.environ.get(LIBRARY_ROOT_ENV, "").strip()
    if env_root:
        library_root = env_root

    return Config(
        library_root=library_root,
        staging_dir=data.get("staging-dir"),
        log_level=str(data.get("log-level", Config.log_level)).upper(),
    )
