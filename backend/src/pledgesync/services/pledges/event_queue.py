"""Per-transaction ordering queue.

A single transaction can emit several Transfer events (a split touches two
pledges). They have to reach the ledger in emission order, one at a time,
while events of unrelated transactions are processed concurrently.
"""

import asyncio
from collections import deque
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger()

QueuedTask = Callable[[], Awaitable[None]]


class TransactionEventQueue:
    """FIFO task queues keyed by transaction hash.

    A task owns its key until ``purge(key)`` is called, normally by the task
    itself once its work is done (or rescheduled work is done). Tasks that
    raise are purged by the queue so later events are never blocked.
    """

    def __init__(self):
        self._queues: dict[str, deque[QueuedTask]] = {}
        self._processing: set[str] = set()
        self._running: set[asyncio.Task] = set()

    def add(self, key: str, task: QueuedTask) -> None:
        """Enqueue a unit of work under ``key`` without starting it."""
        self._queues.setdefault(key, deque()).append(task)
        logger.debug("event_queue.added", key=key, queued=len(self._queues[key]))

    def is_processing(self, key: str) -> bool:
        """True while a task for ``key`` is running or holds the key."""
        return key in self._processing

    def purge(self, key: str) -> None:
        """Finish the current unit of work for ``key`` and start the next one.

        When nothing is queued the key becomes idle.
        """
        queue = self._queues.get(key)

        if not queue:
            self._queues.pop(key, None)
            self._processing.discard(key)
            logger.debug("event_queue.idle", key=key)
            return

        task = queue.popleft()
        self._processing.add(key)

        running = asyncio.create_task(self._run(key, task))
        self._running.add(running)
        running.add_done_callback(self._running.discard)

    def submit(self, key: str, task: QueuedTask) -> None:
        """Enqueue ``task`` and start it right away if ``key`` is idle."""
        # Added first so the queue tracks the event while it runs
        self.add(key, task)
        if not self.is_processing(key):
            self.purge(key)

    @property
    def running(self) -> int:
        """Number of tasks currently executing."""
        return len(self._running)

    async def join(self) -> None:
        """Wait until every started task has finished."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def _run(self, key: str, task: QueuedTask) -> None:
        try:
            await task()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "event_queue.task_failed",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            self.purge(key)
