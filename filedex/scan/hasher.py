"""Hash one regular file into a FileRecord."""

import logging
from typing import Optional

from filedex.catalog.models import FileRecord
from filedex.digest import compute_digests, placeholder_digests
from filedex.scan.walker import Entry

log = logging.getLogger(__name__)


def hash_file(entry: Entry, hostname: str) -> Optional[FileRecord]:
    """Read the whole file and digest it. Returns None (and logs) if it cannot be opened or read.

    size and mod_time come from the walker's snapshot, not a fresh stat.
    Blocking; run in a worker thread.
    """
    try:
        with open(entry.path, "rb") as f:
            body = f.read()
    except MemoryError as e:
        log.error("Hash %s: out of memory (file too large to load): %s", entry.path, e)
        return None
    except OSError as e:
        log.warning("Hash %s: cannot read, dropping: %s", entry.path, e)
        return None
    digests = compute_digests(body)
    return FileRecord(
        hostname=hostname,
        path=entry.path,
        size=entry.size,
        mod_time=entry.mod_time,
        primary_digest=digests.primary,
        secondary_digest=digests.secondary,
    )


def placeholder_record(entry: Entry, hostname: str) -> FileRecord:
    """Record for an entry whose content is not read (non-regular entry or no-hash run)."""
    digests = placeholder_digests()
    return FileRecord(
        hostname=hostname,
        path=entry.path,
        size=entry.size,
        mod_time=entry.mod_time,
        primary_digest=digests.primary,
        secondary_digest=digests.secondary,
    )
