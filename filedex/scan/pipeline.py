"""Update run: walk -> bounded hasher pool -> conduit -> reconciler.

State machine: idle -> walking -> draining -> done.

The walker enqueues regular files on a bounded work queue (backpressure on deep
trees) consumed by a fixed number of hasher workers; non-regular entries skip
the pool and go straight onto the conduit as placeholder records. Every
dispatch is counted on a CompletionBarrier. The conduit is closed only after
the walk has returned and the barrier has dropped to zero, then the reconciler
drains what is left and exits.
"""

import asyncio
import logging
import os
from concurrent.futures import Executor, ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import List, Optional

from filedex.catalog.models import FileRecord
from filedex.config import Settings
from filedex.db.session import Catalog
from filedex.errors import WalkError
from filedex.scan.hasher import hash_file, placeholder_record
from filedex.scan.reconciler import CONDUIT_CLOSED, ReconcileStats, Reconciler
from filedex.scan.walker import Entry, EntryKind, walk

log = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    WALKING = "walking"
    DRAINING = "draining"
    DONE = "done"


class CompletionBarrier:
    """Counts outstanding dispatches; resolves once traversal is complete and none are pending."""

    def __init__(self) -> None:
        self._pending = 0
        self._traversal_done = False
        self._event = asyncio.Event()

    @property
    def pending(self) -> int:
        return self._pending

    @property
    def complete(self) -> bool:
        return self._event.is_set()

    def add(self) -> None:
        if self._traversal_done:
            raise RuntimeError("dispatch after traversal completed")
        self._pending += 1

    def done(self) -> None:
        if self._pending <= 0:
            raise RuntimeError("done() without matching add()")
        self._pending -= 1
        self._check()

    def traversal_complete(self) -> None:
        self._traversal_done = True
        self._check()

    def _check(self) -> None:
        if self._traversal_done and self._pending == 0:
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class RunContext:
    """Everything one update run needs. Built per invocation and passed down explicitly."""

    def __init__(
        self,
        catalog: Catalog,
        root: Path,
        hostname: str,
        quick: bool = False,
        no_hash: bool = False,
        workers: int = 4,
        queue_size: int = 0,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.catalog = catalog
        self.root = Path(os.path.abspath(root))
        self.hostname = hostname
        self.quick = quick
        self.no_hash = no_hash
        self.workers = workers
        self.queue_size = queue_size or 4 * workers

    @classmethod
    def from_settings(
        cls, catalog: Catalog, settings: Settings, root: Path, quick: bool = False, no_hash: bool = False
    ) -> "RunContext":
        return cls(
            catalog,
            root,
            hostname=settings.effective_hostname,
            quick=quick,
            no_hash=no_hash,
            workers=settings.workers,
            queue_size=settings.effective_queue_size,
        )


class RunReport:
    """Counters of one finished update run."""

    def __init__(self, entries: int, dispatched: int, dropped: int, placeholders: int, stats: ReconcileStats) -> None:
        self.entries = entries
        self.dispatched = dispatched
        self.dropped = dropped
        self.placeholders = placeholders
        self.stats = stats

    @property
    def writes(self) -> int:
        return self.stats.writes

    def summary(self) -> str:
        s = self.stats
        return (
            f"{self.entries} entries walked, {self.dispatched} hashed, {self.dropped} unreadable, "
            f"{self.placeholders} not hashed; {s.inserted} inserted, {s.updated} updated, "
            f"{s.unchanged} unchanged, {s.failed} failed"
        )


class UpdateRun:
    """One catalog update over ctx.root. run() may be called once."""

    def __init__(self, ctx: RunContext) -> None:
        self._ctx = ctx
        self._state = RunState.IDLE
        self._entries = 0
        self._dispatched = 0
        self._dropped = 0
        self._placeholders = 0

    @property
    def state(self) -> RunState:
        return self._state

    def _set_state(self, state: RunState) -> None:
        log.debug("Update run %s -> %s", self._state.value, state.value)
        self._state = state

    async def run(self) -> RunReport:
        """Walk, hash and reconcile. Raises WalkError after draining if the root cannot be walked."""
        if self._state is not RunState.IDLE:
            raise RuntimeError("update run already started")
        ctx = self._ctx
        log.info(
            "Update started (root=%s, hostname=%s, workers=%d, quick=%s, no_hash=%s)",
            ctx.root, ctx.hostname, ctx.workers, ctx.quick, ctx.no_hash,
        )
        work: "asyncio.Queue[Optional[Entry]]" = asyncio.Queue(maxsize=ctx.queue_size)
        conduit: "asyncio.Queue[Optional[FileRecord]]" = asyncio.Queue()
        barrier = CompletionBarrier()
        reconciler = Reconciler(ctx.catalog, quick=ctx.quick, compare_digests=not ctx.no_hash)

        with ThreadPoolExecutor(max_workers=ctx.workers, thread_name_prefix="filedex-hash") as executor:
            reconcile_task = asyncio.create_task(reconciler.run(conduit))
            workers: List[asyncio.Task] = [
                asyncio.create_task(self._hash_worker(work, conduit, barrier, executor))
                for _ in range(ctx.workers)
            ]
            self._set_state(RunState.WALKING)
            walk_error: Optional[WalkError] = None
            try:
                await self._walk(work, conduit, barrier)
            except WalkError as e:
                walk_error = e
            except BaseException:
                for task in (*workers, reconcile_task):
                    task.cancel()
                raise

            barrier.traversal_complete()
            self._set_state(RunState.DRAINING)
            await barrier.wait()
            for _ in workers:
                await work.put(None)
            await asyncio.gather(*workers)
            await conduit.put(CONDUIT_CLOSED)
            stats = await reconcile_task

        self._set_state(RunState.DONE)
        report = RunReport(self._entries, self._dispatched, self._dropped, self._placeholders, stats)
        if walk_error is not None:
            log.error("Update aborted: %s", walk_error)
            raise walk_error
        log.info("Update completed: %s", report.summary())
        return report

    async def _walk(
        self,
        work: "asyncio.Queue[Optional[Entry]]",
        conduit: "asyncio.Queue[Optional[FileRecord]]",
        barrier: CompletionBarrier,
    ) -> None:
        ctx = self._ctx
        async for entry in walk(ctx.root):
            self._entries += 1
            if entry.kind is EntryKind.DIRECTORY:
                continue
            if entry.hashable and not ctx.no_hash:
                barrier.add()
                self._dispatched += 1
                # blocks while the pool is behind
                await work.put(entry)
            else:
                self._placeholders += 1
                await conduit.put(placeholder_record(entry, ctx.hostname))

    async def _hash_worker(
        self,
        work: "asyncio.Queue[Optional[Entry]]",
        conduit: "asyncio.Queue[Optional[FileRecord]]",
        barrier: CompletionBarrier,
        executor: Executor,
    ) -> None:
        loop = asyncio.get_running_loop()
        hostname = self._ctx.hostname
        while True:
            entry = await work.get()
            if entry is None:
                return
            try:
                try:
                    record = await loop.run_in_executor(executor, hash_file, entry, hostname)
                except Exception:
                    log.exception("Hash %s failed", entry.path)
                    record = None
                if record is None:
                    self._dropped += 1
                else:
                    await conduit.put(record)
            finally:
                barrier.done()


async def run_update(ctx: RunContext) -> RunReport:
    """Run one update over ctx.root."""
    return await UpdateRun(ctx).run()
