"""Serialized catalog writer: for each completed record decide insert, update or no-op.

The reconciler is the only writer during an update run. Each record is looked
up and written in its own session and committed on its own. A failure affects
only that record: it is logged, counted and skipped. A failed lookup is never
mistaken for an absent row, so a flaky store cannot cause duplicate inserts.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from filedex.catalog import store
from filedex.catalog.models import FileEntry, FileRecord
from filedex.db.session import Catalog
from filedex.errors import LookupFailed, WriteFailed

log = logging.getLogger(__name__)

# Put on the conduit after the last record
CONDUIT_CLOSED = None


class Outcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class ReconcileStats:
    """Per-run outcome counters."""

    def __init__(self) -> None:
        self.inserted = 0
        self.updated = 0
        self.unchanged = 0
        self.failed = 0

    def count(self, outcome: Outcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    @property
    def writes(self) -> int:
        return self.inserted + self.updated

    def __repr__(self) -> str:
        return (
            f"ReconcileStats(inserted={self.inserted}, updated={self.updated}, "
            f"unchanged={self.unchanged}, failed={self.failed})"
        )


def _content_changed(entry: FileEntry, record: FileRecord) -> bool:
    return entry.primary_digest != record.primary_digest or entry.secondary_digest != record.secondary_digest


def _metadata_changed(entry: FileEntry, record: FileRecord) -> bool:
    return entry.size != record.size or entry.modtimestamp != record.mod_time


class Reconciler:
    """Single consumer of the record conduit.

    quick: rows that already exist are never updated.
    compare_digests: False for no-hash runs, whose records carry placeholder
    digests; stored digests are then kept and only size/mtime are refreshed.
    """

    def __init__(self, catalog: Catalog, quick: bool = False, compare_digests: bool = True) -> None:
        self._catalog = catalog
        self._quick = quick
        self._compare_digests = compare_digests
        self.stats = ReconcileStats()

    async def handle(self, record: FileRecord) -> Outcome:
        """Reconcile one record against the catalog and count the outcome."""
        try:
            outcome = await self._reconcile(record)
        except (LookupFailed, WriteFailed) as e:
            log.error("Skipping %s: %s", record.path, e)
            outcome = Outcome.FAILED
        except SQLAlchemyError as e:
            log.error("Skipping %s: commit failed: %s", record.path, e)
            outcome = Outcome.FAILED
        except Exception:
            log.exception("Skipping %s: unexpected error", record.path)
            outcome = Outcome.FAILED
        self.stats.count(outcome)
        return outcome

    async def _reconcile(self, record: FileRecord) -> Outcome:
        async with self._catalog.session() as session:
            entry = await store.get_entry(session, record.hostname, record.path)
            if entry is None:
                log.debug("Insert %s", record.path)
                await store.insert_entry(session, record)
                return Outcome.INSERTED
            if self._quick:
                return Outcome.UNCHANGED
            if self._compare_digests:
                if not _content_changed(entry, record):
                    return Outcome.UNCHANGED
                log.debug("Update %s (content changed)", record.path)
                await store.update_entry(session, entry, record)
                return Outcome.UPDATED
            if not _metadata_changed(entry, record):
                return Outcome.UNCHANGED
            log.debug("Update %s (size/mtime changed, digests kept)", record.path)
            await store.update_entry(session, entry, record, digests=False)
            return Outcome.UPDATED

    async def run(self, conduit: "asyncio.Queue[Optional[FileRecord]]") -> ReconcileStats:
        """Drain conduit one record at a time until CONDUIT_CLOSED is received."""
        while True:
            record = await conduit.get()
            try:
                if record is CONDUIT_CLOSED:
                    return self.stats
                await self.handle(record)
            finally:
                conduit.task_done()
