"""
Spool Sweeper

Feeds spool entries to the collector:
- A debouncer task turns bursts of notify() calls (one per spooled
  reading) into a single directory sweep, and also sweeps periodically
  so failed entries are retried when no new readings arrive
- A sweep enqueues every entry name found in the spool directory that
  is not already waiting in the queue
- A single worker task drains the queue in FIFO order, uploads each
  entry and removes it only after the collector returned 201

Robustness Guarantees:
1. Only remove an entry AFTER a successful upload
2. Failed uploads leave the entry on disk for a later sweep
3. An entry that vanished before upload counts as already delivered
4. Entries that keep failing are retried with capped exponential backoff
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum

from ...common.exceptions import DeleteError, SpoolError, UploadError
from ...common.logging_setup import get_service_logger
from .backoff import RetryBackoff
from .store import SpoolStore
from .uploader import Uploader

logger = get_service_logger("spool.sweeper")


class UploadOutcome(Enum):
    """Result of processing one queued entry."""
    DELIVERED = "delivered"
    FAILED = "failed"
    MISSING = "missing"    # already delivered by an earlier attempt
    BACKOFF = "backoff"    # retry delay not expired, left for a later sweep


class Sweeper:
    """
    Sweep debouncer, work queue and upload worker.

    Args:
        store: Spool store to sweep
        uploader: Collector uploader
        backoff: Per-entry retry backoff
        sweep_interval: Seconds between periodic sweeps
        debounce: Seconds to wait after a notify() before sweeping
    """

    def __init__(
        self,
        store: SpoolStore,
        uploader: Uploader,
        backoff: RetryBackoff | None = None,
        sweep_interval: float = 60.0,
        debounce: float = 0.5,
    ):
        self.store = store
        self.uploader = uploader
        self.backoff = backoff or RetryBackoff()
        self.sweep_interval = sweep_interval
        self.debounce = debounce

        # Unbounded: a sweep never drops an entry name
        self.queue: asyncio.Queue[str] = asyncio.Queue()
        # Names waiting in the queue (not yet picked up by the worker)
        self._queued: set[str] = set()

        self._sweep_wanted = asyncio.Event()
        self._running = False
        self._debounce_task: asyncio.Task | None = None
        self._worker_task: asyncio.Task | None = None
        self._current: str | None = None

        # Stats
        self.sweeps = 0
        self.uploaded = 0
        self.upload_failures = 0
        self.skipped_backoff = 0
        self.last_upload_at: datetime | None = None
        self.last_error: str | None = None

    # ============================================
    # LIFECYCLE
    # ============================================

    async def start(self) -> None:
        """Start the debouncer and the upload worker, then sweep once."""
        if self._running:
            return
        self._running = True
        self._debounce_task = asyncio.create_task(self._debounce_loop(), name="sweep-debouncer")
        self._worker_task = asyncio.create_task(self._worker_loop(), name="upload-worker")

        # Pick up entries left over from a previous run
        self.notify()
        logger.info(
            f"Sweeper started (interval: {self.sweep_interval}s, debounce: {self.debounce}s)"
        )

    async def stop(self, grace_period: float = 10.0) -> None:
        """
        Stop sweeping and let the in-flight upload finish.

        Args:
            grace_period: Seconds to wait for an in-flight upload before
                cancelling it; the entry stays on disk either way
        """
        self._running = False

        if self._debounce_task:
            self._debounce_task.cancel()
            try:
                await self._debounce_task
            except asyncio.CancelledError:
                pass
            self._debounce_task = None

        if self._worker_task:
            if self._current is not None:
                logger.info(f"Waiting up to {grace_period}s for upload of {self._current}")
                done, _ = await asyncio.wait({self._worker_task}, timeout=grace_period)
                if not done:
                    logger.warning(f"Upload of {self._current} cancelled at shutdown")
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None

        logger.info(
            f"Sweeper stopped ({self.queue.qsize()} queued entries left for next run)"
        )

    # ============================================
    # SWEEP
    # ============================================

    def notify(self) -> None:
        """Request a sweep; bursts are coalesced by the debouncer."""
        self._sweep_wanted.set()

    async def _debounce_loop(self) -> None:
        while self._running:
            try:
                await asyncio.wait_for(self._sweep_wanted.wait(), timeout=self.sweep_interval)
            except asyncio.TimeoutError:
                pass  # periodic sweep

            # Notifications arriving during the window join this sweep
            await asyncio.sleep(self.debounce)
            self._sweep_wanted.clear()

            try:
                await self.sweep()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Sweep failed")

    async def sweep(self) -> int:
        """
        Make sure every entry in the spool directory is queued.

        Entries already waiting in the queue are not added again; an
        entry currently being uploaded is.

        Returns:
            Number of entries newly enqueued
        """
        try:
            entries = self.store.list()
        except SpoolError as e:
            logger.error(f"Failed reading spool directory: {e.message}")
            return 0

        enqueued = 0
        for entry in entries:
            if entry.name in self._queued:
                continue
            self._queued.add(entry.name)
            await self.queue.put(entry.name)
            enqueued += 1

        # Entries removed by hand no longer need retry state
        pruned = self.backoff.prune({entry.name for entry in entries})
        if pruned:
            logger.debug(f"Dropped retry state of {pruned} entries gone from the spool")

        self.sweeps += 1
        if entries:
            logger.info(
                f"Found {len(entries)} files to upload",
                extra={"found": len(entries), "enqueued": enqueued, "queued": self.queue.qsize()},
            )
        return enqueued

    # ============================================
    # UPLOAD WORKER
    # ============================================

    async def _worker_loop(self) -> None:
        while self._running:
            name = await self.queue.get()
            self._queued.discard(name)
            self._current = name
            try:
                await self.process(name)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Unexpected error processing {name}")
            finally:
                self._current = None
                self.queue.task_done()

    async def process(self, name: str) -> UploadOutcome:
        """Upload one entry and remove it on success."""
        if not self.backoff.ready(name):
            self.skipped_backoff += 1
            logger.debug(f"Skipping {name}, retry delay not expired")
            return UploadOutcome.BACKOFF

        entry = self.store.entry(name)
        try:
            content = await asyncio.to_thread(entry.open)
        except FileNotFoundError:
            self.backoff.clear(name)
            logger.debug(f"{name} already delivered, skipping")
            return UploadOutcome.MISSING
        except OSError as e:
            self._record_failure(name, f"cannot read {name}: {e}")
            return UploadOutcome.FAILED

        logger.info(f"Uploading {name}", extra={"entry": name})
        try:
            await self.uploader.upload(name, content)
        except UploadError as e:
            self._record_failure(name, e.message, status_code=e.status_code, body=e.body)
            return UploadOutcome.FAILED

        self.backoff.clear(name)
        self.uploaded += 1
        self.last_upload_at = datetime.now(timezone.utc)

        try:
            self.store.remove(name)
        except DeleteError as e:
            # Entry will be uploaded again on a later sweep
            logger.warning(f"Failed deleting {name}: {e.message}", extra={"entry": name})
        else:
            logger.info(f"Deleted {name} after successful upload", extra={"entry": name})

        return UploadOutcome.DELIVERED

    async def drain(self) -> dict[UploadOutcome, int]:
        """Process everything currently queued (used when the worker isn't running)."""
        counts = {outcome: 0 for outcome in UploadOutcome}
        while not self.queue.empty():
            name = self.queue.get_nowait()
            self._queued.discard(name)
            try:
                counts[await self.process(name)] += 1
            finally:
                self.queue.task_done()
        return counts

    def _record_failure(
        self,
        name: str,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        delay = self.backoff.record_failure(name)
        self.upload_failures += 1
        self.last_error = message
        logger.warning(
            f"Failed to upload {name}: {message} (retry in {delay:.0f}s)",
            extra={
                "entry": name,
                "status_code": status_code,
                "response_body": body,
                "failures": self.backoff.failures(name),
            },
        )

    # ============================================
    # STATUS
    # ============================================

    def get_status(self) -> dict:
        return {
            "queued": self.queue.qsize(),
            "in_flight": self._current,
            "sweeps": self.sweeps,
            "uploaded": self.uploaded,
            "upload_failures": self.upload_failures,
            "skipped_backoff": self.skipped_backoff,
            "entries_in_backoff": len(self.backoff),
            "last_upload_at": self.last_upload_at.isoformat() if self.last_upload_at else None,
            "last_error": self.last_error,
        }
