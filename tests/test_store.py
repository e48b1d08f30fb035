"""Tests for catalog row access."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from filedex.catalog import store
from filedex.catalog.models import FileRecord
from filedex.errors import LookupFailed


def _record(path: str, secondary: str = "s1", hostname: str = "h1") -> FileRecord:
    return FileRecord(
        hostname=hostname,
        path=path,
        size=5,
        mod_time=datetime(2024, 1, 1, 12, 0, 0),
        primary_digest="p1",
        secondary_digest=secondary,
    )


def test_like_pattern_wildcards() -> None:
    """* and ? become % and _; the pattern is anchored when wildcards are present."""
    assert store.like_pattern("*.txt") == "%.txt"
    assert store.like_pattern("?.txt") == "_.txt"
    assert store.like_pattern("/data/*/x?") == "/data/%/x_"


def test_like_pattern_substring_and_escaping() -> None:
    """Plain patterns match as substrings with LIKE metacharacters escaped."""
    assert store.like_pattern("foo") == "%foo%"
    assert store.like_pattern("50%") == "%50\\%%"
    assert store.like_pattern("a_b") == "%a\\_b%"


@pytest.mark.asyncio
async def test_get_entry_absent(catalog) -> None:
    """get_entry returns None for an unknown key."""
    async with catalog.session() as session:
        assert await store.get_entry(session, "h1", "/nope") is None


@pytest.mark.asyncio
async def test_insert_then_get(catalog) -> None:
    """insert_entry persists all fields under (hostname, path)."""
    async with catalog.session() as session:
        await store.insert_entry(session, _record("/x/a.txt"))
    async with catalog.session() as session:
        entry = await store.get_entry(session, "h1", "/x/a.txt")
    assert entry is not None
    assert entry.size == 5
    assert entry.modtimestamp == datetime(2024, 1, 1, 12, 0, 0)
    assert entry.primary_digest == "p1"
    assert entry.secondary_digest == "s1"


@pytest.mark.asyncio
async def test_same_path_other_host_is_separate_row(catalog) -> None:
    """The key is (hostname, path): another host gets its own row."""
    async with catalog.session() as session:
        await store.insert_entry(session, _record("/x/a.txt", hostname="h1"))
        await store.insert_entry(session, _record("/x/a.txt", hostname="h2"))
    async with catalog.session() as session:
        assert await store.count_by_hostname(session) == {"h1": 1, "h2": 1}


@pytest.mark.asyncio
async def test_update_entry_keeps_digests_when_asked(catalog) -> None:
    """update_entry(digests=False) refreshes size/mtime only."""
    async with catalog.session() as session:
        entry = await store.insert_entry(session, _record("/x/a.txt"))
    changed = FileRecord(
        hostname="h1", path="/x/a.txt", size=9, mod_time=datetime(2024, 2, 1),
        primary_digest="", secondary_digest="",
    )
    async with catalog.session() as session:
        entry = await store.get_entry(session, "h1", "/x/a.txt")
        await store.update_entry(session, entry, changed, digests=False)
    async with catalog.session() as session:
        entry = await store.get_entry(session, "h1", "/x/a.txt")
    assert entry.size == 9
    assert entry.secondary_digest == "s1"


@pytest.mark.asyncio
async def test_get_entry_store_error_raises_lookup_failed() -> None:
    """A store error on lookup is a LookupFailed, never a silent None."""
    session = MagicMock()
    session.get = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("disk I/O error")))
    with pytest.raises(LookupFailed, match="disk I/O error"):
        await store.get_entry(session, "h1", "/x/a.txt")


@pytest.mark.asyncio
async def test_duplicate_rows_ignore_placeholders(catalog) -> None:
    """Only real digests shared by two distinct paths come back."""
    async with catalog.session() as session:
        await store.insert_entry(session, _record("/x/a", secondary="same"))
        await store.insert_entry(session, _record("/x/b", secondary="same"))
        await store.insert_entry(session, _record("/x/c", secondary="other"))
        await store.insert_entry(session, _record("/x/l1", secondary=""))
        await store.insert_entry(session, _record("/x/l2", secondary=""))
    async with catalog.session() as session:
        rows = await store.duplicate_rows(session)
    assert rows == [("same", "/x/a"), ("same", "/x/b")]


@pytest.mark.asyncio
async def test_duplicate_rows_same_path_two_hosts_is_not_a_group(catalog) -> None:
    """One path seen on two hosts is a single distinct path, not a duplicate."""
    async with catalog.session() as session:
        await store.insert_entry(session, _record("/x/a", secondary="same", hostname="h1"))
        await store.insert_entry(session, _record("/x/a", secondary="same", hostname="h2"))
    async with catalog.session() as session:
        assert await store.duplicate_rows(session) == []
