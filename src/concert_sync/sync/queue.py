"""Durable priority queue and scheduler for sync tasks."""

import asyncio
from collections import Counter
from collections.abc import Awaitable, Callable

from concert_sync.errors import PersistenceError
from concert_sync.logging import get_logger
from concert_sync.state.store import SyncStore
from concert_sync.types import EntityType, Priority, QueueStatus, SyncTask

logger = get_logger("sync.queue")

TaskRunner = Callable[[SyncTask], Awaitable[bool]]


class SyncQueue:
    """Priority queue of sync tasks with bounded concurrency and retries.

    Pending tasks are kept sorted by priority (highest first), then by
    attempts (fewest first). A tick claims as many tasks as there are free
    slots and runs them as asyncio tasks. A failed task is demoted one
    priority level and retried until it reaches ``max_attempts``, then it
    is dropped and recorded in the store.

    The pending list is rewritten to the store after every change. If that
    write fails the in-memory list stays authoritative but is not durable.

    Args:
        runner: Coroutine function executing a task, normally SyncManager.dispatch.
        store: Store persisting pending and dropped tasks.
        max_concurrent: Maximum tasks running at once.
        max_attempts: Attempts before a task is dropped.
        tick_interval: Seconds the scheduler loop sleeps without a wake-up.
    """

    def __init__(
        self,
        runner: TaskRunner,
        store: SyncStore,
        max_concurrent: int = 3,
        max_attempts: int = 3,
        tick_interval: float = 5.0,
    ) -> None:
        self._runner = runner
        self._store = store
        self._max_concurrent = max_concurrent
        self._max_attempts = max_attempts
        self._tick_interval = tick_interval
        self._pending: list[SyncTask] = []
        self._active = 0
        self._jobs: set[asyncio.Task] = set()
        self._wake = asyncio.Event()
        self._loop_task: asyncio.Task | None = None
        self._stopping = False

    @property
    def pending(self) -> list[SyncTask]:
        """Snapshot of pending tasks in dispatch order."""
        return list(self._pending)

    @property
    def active(self) -> int:
        return self._active

    @property
    def running(self) -> bool:
        """Whether the scheduler loop is running."""
        return self._loop_task is not None and not self._loop_task.done()

    async def load(self) -> int:
        """Restore persisted pending tasks.

        Returns:
            Number of tasks restored.
        """
        try:
            tasks = self._store.load_queue()
        except PersistenceError as exc:
            logger.error("Could not load persisted queue: %s", exc)
            return 0
        restored = sum(1 for task in tasks if self._insert(task))
        self._sort()
        self._persist()
        if restored:
            logger.info("Restored %d queued tasks", restored)
            self._wake.set()
        return restored

    async def add(self, task: SyncTask) -> bool:
        """Queue a task unless an equal one is already pending.

        A duplicate with a higher priority raises the pending task's priority.

        Args:
            task: Task to queue.

        Returns:
            True if newly queued, False if merged into a pending task.
        """
        added = self._insert(task)
        self._sort()
        self._persist()
        self._wake.set()
        if added:
            logger.debug("Queued %s (%s)", task.describe(), task.priority.value)
        return added

    async def process_queue(self) -> int:
        """Run one scheduler tick without waiting for the claimed tasks.

        Returns:
            Number of tasks dispatched.
        """
        slots = self._max_concurrent - self._active
        if slots <= 0 or not self._pending:
            return 0

        claimed = self._pending[:slots]
        del self._pending[:slots]
        self._persist()

        for task in claimed:
            self._active += 1
            job = asyncio.create_task(self._run(task), name=f"sync:{task.describe()}")
            self._jobs.add(job)
            job.add_done_callback(self._jobs.discard)
        return len(claimed)

    async def join(self) -> None:
        """Wait for every dispatched task to finish."""
        while self._jobs:
            await asyncio.gather(*list(self._jobs))

    async def drain(self) -> None:
        """Tick until nothing is pending or running, including retries."""
        while self._pending or self._jobs:
            await self.process_queue()
            running = [job for job in self._jobs if not job.done()]
            if running:
                await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
            else:
                await asyncio.sleep(0)

    def status(self) -> QueueStatus:
        """Counts of pending and running tasks."""
        by_priority = Counter(task.priority.value for task in self._pending)
        by_type = Counter(task.type.value for task in self._pending)
        return QueueStatus(
            pending=len(self._pending),
            active=self._active,
            max_concurrent=self._max_concurrent,
            by_priority={p.value: by_priority[p.value] for p in Priority},
            by_type={t.value: by_type[t.value] for t in EntityType},
        )

    async def clear(self) -> None:
        """Remove all pending tasks; running tasks finish normally."""
        self._pending.clear()
        self._persist()
        logger.info("Cleared sync queue")

    async def start(self) -> None:
        """Start the scheduler loop in the background."""
        if self.running:
            return
        self._stopping = False
        self._loop_task = asyncio.create_task(self._run_loop(), name="sync-queue")
        logger.info("Sync queue started (max %d concurrent)", self._max_concurrent)

    async def stop(self) -> None:
        """Stop the scheduler loop and wait for running tasks."""
        if self._loop_task is not None:
            self._stopping = True
            self._wake.set()
            await self._loop_task
            self._loop_task = None
        await self.join()
        logger.info("Sync queue stopped with %d pending tasks", len(self._pending))

    async def _run_loop(self) -> None:
        while not self._stopping:
            self._wake.clear()
            await self.process_queue()
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._tick_interval)
            except TimeoutError:
                continue

    async def _run(self, task: SyncTask) -> None:
        error = None
        try:
            try:
                ok = await self._runner(task)
            except Exception as exc:
                logger.warning("Task %s raised: %s", task.describe(), exc)
                ok, error = False, str(exc)
            if ok:
                logger.debug("Completed %s", task.describe())
            else:
                self._retry_or_drop(task, error)
        finally:
            self._active -= 1
            self._wake.set()

    def _retry_or_drop(self, task: SyncTask, error: str | None) -> None:
        task.attempts += 1
        if task.attempts >= self._max_attempts:
            logger.error(
                "Dropping %s after %d attempts: %s",
                task.describe(),
                task.attempts,
                error or "task reported failure",
            )
            try:
                self._store.record_dropped(task, error)
            except PersistenceError as exc:
                logger.error("Could not record dropped task %s: %s", task.describe(), exc)
            return

        task.priority = task.priority.demoted()
        logger.info(
            "Retrying %s at %s priority (attempt %d)",
            task.describe(),
            task.priority.value,
            task.attempts,
        )
        self._insert(task)
        self._sort()
        self._persist()

    def _insert(self, task: SyncTask) -> bool:
        existing = next((t for t in self._pending if t.key == task.key), None)
        if existing is None:
            self._pending.append(task)
            return True
        if task.priority.rank > existing.priority.rank:
            existing.priority = task.priority
        return False

    def _sort(self) -> None:
        self._pending.sort(key=lambda t: (-t.priority.rank, t.attempts))

    def _persist(self) -> None:
        try:
            self._store.replace_queue(self._pending)
        except PersistenceError as exc:
            logger.error(
                "Queue not persisted, %d pending tasks are not durable: %s",
                len(self._pending),
                exc,
            )
