"""Read-only catalog reports: duplicates, search, stats, dump."""

import itertools
import logging
import os
from typing import Dict, List

from filedex.catalog import store
from filedex.catalog.models import FileEntry
from filedex.db.session import Catalog

log = logging.getLogger(__name__)


class CatalogStats:
    def __init__(self, db_path: str, tables: List[str], rows_by_hostname: Dict[str, int]) -> None:
        self.db_path = db_path
        self.tables = tables
        self.rows_by_hostname = rows_by_hostname

    @property
    def total_rows(self) -> int:
        return sum(self.rows_by_hostname.values())

    def lines(self) -> List[str]:
        out = [
            f"Catalog: {self.db_path}",
            f"Tables: {', '.join(self.tables) or '(none)'}",
            f"Files: {self.total_rows}",
        ]
        for hostname, n in self.rows_by_hostname.items():
            out.append(f"  {hostname}: {n}")
        return out


async def find_duplicates(catalog: Catalog) -> List[List[str]]:
    """Groups of paths sharing a secondary digest, two or more distinct paths each.

    Paths within a group are sorted and groups are ordered by their first path,
    so the output is the same for the same catalog contents.
    """
    async with catalog.session() as session:
        rows = await store.duplicate_rows(session)
    groups = [sorted({path for _, path in members}) for _, members in itertools.groupby(rows, key=lambda r: r[0])]
    groups.sort(key=lambda g: g[0])
    log.debug("Found %d duplicate groups", len(groups))
    return groups


async def search(catalog: Catalog, pattern: str) -> List[FileEntry]:
    """Rows whose path matches pattern (* and ? wildcards, substring when none)."""
    async with catalog.session() as session:
        return await store.search_entries(session, pattern)


async def catalog_stats(catalog: Catalog) -> CatalogStats:
    tables = await catalog.table_names()
    async with catalog.session() as session:
        counts = await store.count_by_hostname(session)
    return CatalogStats(str(catalog.db_path), tables, counts)


async def dump_rows(catalog: Catalog) -> List[FileEntry]:
    async with catalog.session() as session:
        return await store.all_entries(session)


def display_path(path: str) -> str:
    """Printable form of a stored path; bytes that are not valid UTF-8 show as \\xNN."""
    return os.fsencode(path).decode("utf-8", "backslashreplace")


def format_duplicate_group(group: List[str]) -> str:
    return " ".join(display_path(p) for p in group)


def format_entry(entry: FileEntry) -> str:
    """Tab-separated full row."""
    return "\t".join(
        [
            entry.hostname,
            display_path(entry.filename),
            str(entry.size),
            entry.modtimestamp.isoformat(sep=" "),
            entry.primary_digest or "-",
            entry.secondary_digest or "-",
        ]
    )
