"""
Background click processing.

Architecture:
- The redirect path calls ClickWorkerPool.submit() and returns immediately
- A fixed pool of worker tasks drains an in-process asyncio.Queue and runs
  ClickRecorder.record() for each job
- Jobs are detached from the request: a client that disconnects after the
  target was resolved does not cancel its click
- RetentionSweeper periodically purges click events past the retention window
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from shortlink_app.click_processor.models import RawVisit
from shortlink_app.click_processor.recorder import ClickRecorder
from shortlink_app.metrics import CLICK_JOBS_DROPPED_TOTAL, CLICK_JOBS_FAILED_TOTAL
from shortlink_app.models.types import utcnow
from shortlink_app.storage.strategies import LinkStore

logger = logging.getLogger(__name__)

ClickJob = Tuple[int, str, RawVisit]


class ClickWorkerPool:
    """
    Fire-and-forget dispatcher for click jobs.

    Features:
    - Non-blocking submit (never awaits I/O)
    - Bounded queue; overflow is dropped, logged and counted
    - Graceful stop: drain queued jobs, then cancel idle workers
    """

    def __init__(self, recorder: ClickRecorder, workers: int = 4, queue_size: int = 10000):
        self.recorder = recorder
        self.worker_count = max(1, workers)
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._tasks: List[asyncio.Task] = []
        self.running = False
        self.processed_count = 0
        self.failed_count = 0
        self.dropped_count = 0

    def start(self) -> None:
        """Spawn the worker tasks. Must be called from a running event loop."""
        if self.running:
            return
        self.running = True
        self._tasks = [
            asyncio.create_task(self._run(index), name=f"click-worker-{index}")
            for index in range(self.worker_count)
        ]
        logger.info("Click worker pool started (%d workers)", self.worker_count)

    def submit(self, short_link_id: int, short_code: str, visit: RawVisit) -> bool:
        """
        Enqueue a click job without waiting for it.

        Returns:
            True if queued, False if dropped (pool stopped or queue full)
        """
        if not self.running:
            self._drop(short_code, "worker pool not running")
            return False
        try:
            self.queue.put_nowait((short_link_id, short_code, visit))
        except asyncio.QueueFull:
            self._drop(short_code, "queue full")
            return False
        return True

    def _drop(self, short_code: str, reason: str) -> None:
        self.dropped_count += 1
        CLICK_JOBS_DROPPED_TOTAL.inc()
        logger.warning("Click for %s dropped: %s", short_code, reason)

    async def _run(self, index: int) -> None:
        while True:
            short_link_id, short_code, visit = await self.queue.get()
            try:
                await self.recorder.record(short_link_id, short_code, visit)
                self.processed_count += 1
            except asyncio.CancelledError:
                raise
            except Exception:
                # record() swallows its own failures; this is the last line
                self.failed_count += 1
                CLICK_JOBS_FAILED_TOTAL.inc()
                logger.exception("Click worker %d failed on %s", index, short_code)
            finally:
                self.queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued job has been processed."""
        await self.queue.join()

    async def stop(self, timeout: float = 10.0) -> None:
        """Stop accepting jobs, drain the queue (bounded by timeout), stop workers."""
        if not self.running:
            return
        self.running = False
        try:
            await asyncio.wait_for(self.drain(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Click worker pool stopped with %d jobs still queued", self.queue.qsize()
            )

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info(
            "Click worker pool stopped (processed=%d failed=%d dropped=%d)",
            self.processed_count,
            self.failed_count,
            self.dropped_count,
        )


class RetentionSweeper:
    """Periodically deletes click events older than the retention window."""

    def __init__(
        self,
        store: LinkStore,
        retention_days: int = 90,
        interval_seconds: int = 3600,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.retention_days = retention_days
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    async def sweep(self) -> int:
        """Run one purge pass. Returns the number of events removed."""
        cutoff = self.clock() - timedelta(days=self.retention_days)
        removed = await self.store.purge_clicks_before(cutoff)
        if removed:
            logger.info("Purged %d click events older than %s", removed, cutoff.isoformat())
        return removed

    async def _run(self) -> None:
        while True:
            try:
                await self.sweep()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Retention sweep failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="click-retention")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
