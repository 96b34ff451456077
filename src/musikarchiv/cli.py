"""Simple interactive CLI for the musikarchiv library."""

from __future__ import annotations

import argparse
import asyncio
import logging
import shlex
import sys
from pathlib import Path
from typing import Any

from musikarchiv.catalog import Catalog
from musikarchiv.config import DEFAULT_CONFIG_PATH, Config, load_config
from musikarchiv.errors import LibraryError
from musikarchiv.staging import Upload

COMMANDS = "albums, show <album>, rescan, create <name> <file>..., add <album> <file>..., rm-track <album> <track>, rm-album <album>, quit"


def _print_summary(album: dict[str, Any]) -> None:
    print(f"  {album['id']}  {album['title']}  ({album['track_count']} tracks)")


def _print_detail(album: dict[str, Any]) -> None:
    _print_summary(album)
    if album.get("description"):
        print(f"    {album['description']}")
    for track in album["tracks"]:
        duration = f"  {track['duration']}s" if track["duration"] is not None else ""
        print(f"    {track['order']:>3}  {track['title']}{duration}  [{track['id']}]")


def _read_uploads(paths: list[str]) -> list[Upload]:
    return [Upload(Path(p).name, Path(p).read_bytes()) for p in paths]


async def run_command(catalog: Catalog, raw: str) -> bool:
    """Execute one interactive command.  Returns ``False`` on ``quit``."""
    parts = shlex.split(raw)
    if not parts:
        return True
    cmd, args = parts[0].lower(), parts[1:]

    if cmd == "quit":
        return False
    elif cmd == "albums":
        for album in await catalog.list_albums():
            _print_summary(album)
    elif cmd == "show" and len(args) == 1:
        _print_detail(await catalog.get_album(args[0]))
    elif cmd == "rescan":
        albums = await catalog.rescan()
        print(f"  {len(albums)} albums")
    elif cmd == "create" and len(args) >= 2:
        _print_detail(await catalog.create_album(args[0], _read_uploads(args[1:])))
    elif cmd == "add" and len(args) >= 2:
        _print_detail(await catalog.add_tracks(args[0], _read_uploads(args[1:])))
    elif cmd == "rm-track" and len(args) == 2:
        result = await catalog.delete_track(args[0], args[1])
        if "tracks" in result:
            _print_detail(result)
        else:
            print(f"  {result['message']}")
    elif cmd == "rm-album" and len(args) == 1:
        print(f"  {(await catalog.delete_album(args[0]))['message']}")
    else:
        print(f"  Unknown command: {raw}")
    return True


async def _interactive(catalog: Catalog) -> None:
    try:
        await _command_loop(catalog)
    finally:
        await catalog.close()


async def _command_loop(catalog: Catalog) -> None:
    await catalog.start()
    print("musikarchiv – interactive mode")
    print(f"Available commands: {COMMANDS}")
    print()

    while True:
        try:
            raw = await asyncio.to_thread(input, "musikarchiv> ")
        except (EOFError, KeyboardInterrupt):
            print()
            break

        try:
            if not await run_command(catalog, raw.strip()):
                break
        except (LibraryError, OSError, ValueError) as exc:
            print(f"  Error: {exc}")


async def _list(catalog: Catalog) -> int:
    try:
        albums = await catalog.start()
    finally:
        await catalog.close()
    for album in albums:
        _print_summary(album)
    return 0 if albums else 1


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="musikarchiv – a folder-based album library",
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help=f"Path to TOML config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--library-root",
        default=None,
        help="Base path to the album library",
    )
    parser.add_argument(
        "--staging-dir",
        default=None,
        help="Directory for uploads before they are placed (must be outside the library)",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Print the albums found in the library, then exit",
    )
    args = parser.parse_args(argv)

    # Load config file (silently skip if not found)
    cfg = load_config(args.config)

    # CLI flags override config values (only when explicitly provided)
    config = Config(
        library_root=args.library_root if args.library_root is not None else cfg.library_root,
        staging_dir=args.staging_dir if args.staging_dir is not None else cfg.staging_dir,
        log_level=cfg.log_level,
    )

    logging.basicConfig(level=config.log_level, format="%(levelname)s %(message)s")

    try:
        catalog = Catalog.from_config(config)
    except LibraryError as exc:
        print(f"Error: {exc}")
        sys.exit(2)

    if args.list:
        if asyncio.run(_list(catalog)) != 0:
            print(f"No albums found in {config.library_root}")
            sys.exit(1)
        return

    try:
        asyncio.run(_interactive(catalog))
    except KeyboardInterrupt:
        print()


if __name__ == "__main__":
    main()
