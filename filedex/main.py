"""Entry point: parse flags, open the catalog, run exactly one mode."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from filedex import __version__
from filedex.config import Settings, get_settings
from filedex.db.session import Catalog, open_catalog
from filedex.errors import CatalogOpenError, WalkError
from filedex.reports import (
    catalog_stats,
    display_path,
    dump_rows,
    find_duplicates,
    format_duplicate_group,
    format_entry,
    search,
)
from filedex.scan.pipeline import RunContext, run_update

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1


def _setup_logging(settings: Settings, verbose: bool = False) -> None:
    """Configure logging from settings (stderr always; optional file)."""
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root = logging.getLogger("filedex")
    root.setLevel(level)
    root.handlers.clear()
    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root.addHandler(sh)
    if settings.log_file and str(settings.log_file).strip():
        try:
            fh = logging.FileHandler(settings.log_file, encoding="utf-8", errors="backslashreplace")
            fh.setLevel(level)
            fh.setFormatter(fmt)
            root.addHandler(fh)
            root.info("Logging to file %s", settings.log_file)
        except OSError as e:
            root.warning("Could not open log file %s: %s", settings.log_file, e)
    else:
        root.debug("Logging to stderr only (no log_file set)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="filedex",
        description="Catalog files with content digests; find duplicates and search paths.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, help="Directory holding the catalog (default ~/.filedex)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    modes = parser.add_mutually_exclusive_group()
    modes.add_argument("--updatedb", action="store_true", help="Walk --path and update the catalog")
    modes.add_argument("--dupes", action="store_true", help="Print duplicate files, one group per line")
    modes.add_argument("--stats", action="store_true", help="Print catalog stats")
    modes.add_argument("--dump", action="store_true", help="Print every catalog row")

    update = parser.add_argument_group("update options")
    update.add_argument("--path", type=Path, help="Path to walk and update (default .)")
    update.add_argument("--quick", action="store_true", help="Only add new paths; never revise existing rows")
    update.add_argument("--no-hash", action="store_true", help="Record paths, sizes and mtimes without reading content")
    update.add_argument("--hostname", help="Hostname recorded with each row (default: local host name)")
    update.add_argument("--workers", type=int, help="Number of concurrent hashers (default: CPU count)")

    parser.add_argument("--long", action="store_true", help="Search: print full rows instead of paths")
    parser.add_argument("pattern", nargs="?", help="Search pattern (* and ? wildcards; substring otherwise)")
    return parser


def _settings_for(args: argparse.Namespace) -> Settings:
    """Settings from env with CLI flags taking priority."""
    overrides = {}
    if args.config is not None:
        overrides["config_dir"] = args.config.expanduser()
    if args.hostname:
        overrides["hostname"] = args.hostname
    if args.workers is not None:
        overrides["workers"] = args.workers
    if not overrides:
        return get_settings()
    return Settings(**overrides)


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    try:
        catalog = await open_catalog(settings.config_dir, settings.db_filename)
    except CatalogOpenError as e:
        log.error("%s", e)
        return EXIT_FATAL
    try:
        return await _dispatch(args, settings, catalog)
    finally:
        await catalog.dispose()


async def _dispatch(args: argparse.Namespace, settings: Settings, catalog: Catalog) -> int:
    if args.updatedb:
        root = args.path or Path(".")
        ctx = RunContext.from_settings(catalog, settings, root, quick=args.quick, no_hash=args.no_hash)
        try:
            await run_update(ctx)
        except WalkError:
            return EXIT_FATAL
        return EXIT_OK
    if args.dupes:
        for group in await find_duplicates(catalog):
            print(format_duplicate_group(group))
        return EXIT_OK
    if args.stats:
        for line in (await catalog_stats(catalog)).lines():
            print(line)
        return EXIT_OK
    if args.dump:
        for entry in await dump_rows(catalog):
            print(format_entry(entry))
        return EXIT_OK
    for entry in await search(catalog, args.pattern):
        print(format_entry(entry) if args.long else display_path(entry.filename))
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    modes = [args.updatedb, args.dupes, args.stats, args.dump, args.pattern is not None]
    if sum(modes) == 0:
        parser.error("choose one of --updatedb, --dupes, --stats, --dump or a search pattern")
    if sum(modes) > 1:
        parser.error("a search pattern cannot be combined with --updatedb, --dupes, --stats or --dump")
    update_only = [
        name
        for name, given in (
            ("--path", args.path is not None),
            ("--quick", args.quick),
            ("--no-hash", args.no_hash),
            ("--hostname", args.hostname is not None),
            ("--workers", args.workers is not None),
        )
        if given
    ]
    if update_only and not args.updatedb:
        parser.error(f"{', '.join(update_only)} only apply with --updatedb")
    if args.long and args.pattern is None:
        parser.error("--long only applies to a search pattern")
    try:
        settings = _settings_for(args)
    except ValidationError as e:
        parser.error(str(e))
    _setup_logging(settings, verbose=args.verbose)
    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
