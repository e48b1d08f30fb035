"""Catalog row access. Writes are made only by the reconciler; everything else reads."""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from filedex.catalog.models import FileEntry, FileRecord
from filedex.digest import PLACEHOLDER_DIGEST
from filedex.errors import LookupFailed, WriteFailed

log = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"


async def get_entry(session: AsyncSession, hostname: str, path: str) -> Optional[FileEntry]:
    """Return the row for (hostname, path) or None when absent. Raises LookupFailed on store errors."""
    try:
        return await session.get(FileEntry, (hostname, path))
    except SQLAlchemyError as e:
        raise LookupFailed(f"lookup of {path!r} failed: {e}") from e


async def insert_entry(session: AsyncSession, record: FileRecord) -> FileEntry:
    """Insert a new row built from record and flush it. Caller commits."""
    entry = record.to_entry()
    session.add(entry)
    try:
        await session.flush()
    except SQLAlchemyError as e:
        raise WriteFailed(f"insert of {record.path!r} failed: {e}") from e
    return entry


async def update_entry(session: AsyncSession, entry: FileEntry, record: FileRecord, digests: bool = True) -> None:
    """Overwrite size and mtime (and both digests unless digests=False) and flush. Caller commits."""
    entry.size = record.size
    entry.modtimestamp = record.mod_time
    if digests:
        entry.primary_digest = record.primary_digest
        entry.secondary_digest = record.secondary_digest
    try:
        await session.flush()
    except SQLAlchemyError as e:
        raise WriteFailed(f"update of {record.path!r} failed: {e}") from e


def like_pattern(pattern: str) -> str:
    """Translate a shell-style pattern into a LIKE pattern.

    * and ? become % and _; literal % and _ are escaped. A pattern without
    wildcards matches as a substring.
    """
    out = []
    for c in pattern:
        if c == "*":
            out.append("%")
        elif c == "?":
            out.append("_")
        elif c in ("%", "_", LIKE_ESCAPE):
            out.append(LIKE_ESCAPE + c)
        else:
            out.append(c)
    translated = "".join(out)
    if "*" not in pattern and "?" not in pattern:
        translated = f"%{translated}%"
    return translated


async def search_entries(session: AsyncSession, pattern: str) -> List[FileEntry]:
    """Rows whose filename matches pattern, ordered by filename then hostname."""
    result = await session.execute(
        select(FileEntry)
        .where(FileEntry.filename.like(like_pattern(pattern), escape=LIKE_ESCAPE))
        .order_by(FileEntry.filename, FileEntry.hostname)
    )
    return list(result.scalars().all())


async def duplicate_rows(session: AsyncSession) -> List[Tuple[str, str]]:
    """(secondary_digest, filename) for every digest shared by two or more distinct filenames.

    Placeholder digests never group. Ordered by digest then filename.
    """
    shared = (
        select(FileEntry.secondary_digest)
        .where(FileEntry.secondary_digest != PLACEHOLDER_DIGEST)
        .group_by(FileEntry.secondary_digest)
        .having(func.count(func.distinct(FileEntry.filename)) > 1)
    )
    result = await session.execute(
        select(FileEntry.secondary_digest, FileEntry.filename)
        .where(FileEntry.secondary_digest.in_(shared))
        .distinct()
        .order_by(FileEntry.secondary_digest, FileEntry.filename)
    )
    return [(row[0], row[1]) for row in result.all()]


async def count_by_hostname(session: AsyncSession) -> Dict[str, int]:
    result = await session.execute(
        select(FileEntry.hostname, func.count()).group_by(FileEntry.hostname).order_by(FileEntry.hostname)
    )
    return {row[0]: row[1] for row in result.all()}


async def all_entries(session: AsyncSession) -> List[FileEntry]:
    """Every row ordered by (hostname, filename)."""
    result = await session.execute(select(FileEntry).order_by(FileEntry.hostname, FileEntry.filename))
    return list(result.scalars().all())
