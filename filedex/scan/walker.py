"""Directory traversal: classify every entry under a root without following symlinks.

Only regular files are hashed. Directories are traversed into; every other entry
type (symlink, socket, device, pipe, anything unrecognised) becomes a placeholder
record whose content is never read.
"""

import asyncio
import logging
import os
import stat
from concurrent.futures import Executor
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, List, NamedTuple, Optional

from filedex.errors import WalkError

log = logging.getLogger(__name__)


class EntryKind(str, Enum):
    DIRECTORY = "directory"
    REGULAR = "regular"
    SYMLINK = "symlink"
    SOCKET = "socket"
    BLOCK_DEVICE = "block_device"
    CHAR_DEVICE = "char_device"
    PIPE = "pipe"
    IRREGULAR = "irregular"


class Entry(NamedTuple):
    """One filesystem entry with its lstat snapshot (mod_time is naive UTC)."""

    path: str
    kind: EntryKind
    size: int
    mod_time: datetime

    @property
    def hashable(self) -> bool:
        return self.kind is EntryKind.REGULAR


def classify(mode: int) -> EntryKind:
    """Map an lstat st_mode to an EntryKind."""
    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    if stat.S_ISREG(mode):
        return EntryKind.REGULAR
    if stat.S_ISLNK(mode):
        return EntryKind.SYMLINK
    if stat.S_ISSOCK(mode):
        return EntryKind.SOCKET
    if stat.S_ISBLK(mode):
        return EntryKind.BLOCK_DEVICE
    if stat.S_ISCHR(mode):
        return EntryKind.CHAR_DEVICE
    if stat.S_ISFIFO(mode):
        return EntryKind.PIPE
    return EntryKind.IRREGULAR


def _mod_time(st: os.stat_result) -> datetime:
    return datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).replace(tzinfo=None)


def entry_from_stat(path: str, st: os.stat_result) -> Entry:
    return Entry(path=path, kind=classify(st.st_mode), size=st.st_size, mod_time=_mod_time(st))


def scan_directory(directory: str) -> List[Entry]:
    """List one directory's entries with lstat snapshots.

    Raises OSError if the directory itself cannot be opened. An entry whose
    lstat fails is logged and skipped. If reading the listing fails partway,
    the entries read so far are returned and the rest of the directory is lost.
    """
    out: List[Entry] = []
    with os.scandir(directory) as it:
        listing = iter(it)
        while True:
            try:
                dirent = next(listing)
            except StopIteration:
                break
            except OSError as e:
                log.warning("Listing of %s truncated after %d entries: %s", directory, len(out), e)
                break
            try:
                st = dirent.stat(follow_symlinks=False)
            except OSError as e:
                log.warning("Skipping unreadable entry %s: %s", dirent.path, e)
                continue
            out.append(entry_from_stat(dirent.path, st))
    return out


async def walk(root: Path, executor: Optional[Executor] = None) -> AsyncIterator[Entry]:
    """Yield every entry under root (directories included), root first.

    Directory listings run in executor so a slow filesystem does not block the
    event loop. Raises WalkError when root cannot be stat'ed or listed; an
    unlistable subdirectory is logged and its subtree skipped.
    """
    loop = asyncio.get_running_loop()
    root_str = str(root)
    try:
        root_stat = await loop.run_in_executor(executor, os.lstat, root_str)
    except OSError as e:
        raise WalkError(f"Cannot walk {root_str}: {e}") from e
    root_entry = entry_from_stat(root_str, root_stat)
    yield root_entry
    if root_entry.kind is not EntryKind.DIRECTORY:
        return

    pending = [root_str]
    while pending:
        directory = pending.pop()
        try:
            entries = await loop.run_in_executor(executor, scan_directory, directory)
        except OSError as e:
            if directory == root_str:
                raise WalkError(f"Cannot list {root_str}: {e}") from e
            log.warning("Skipping unreadable directory %s: %s", directory, e)
            continue
        for entry in entries:
            yield entry
            if entry.kind is EntryKind.DIRECTORY:
                pending.append(entry.path)
