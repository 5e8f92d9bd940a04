"""Bounded block-number to timestamp cache with request coalescing.

Several Transfer events usually share a block, so a timestamp is fetched at
most once per block number, no matter how many events ask for it at the
same time.
"""

import asyncio
from datetime import UTC, datetime
from functools import partial
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger()

BlockFetcher = Callable[[int], Awaitable[int]]


class BlockTimestampCache:
    """Resolve block numbers to UTC datetimes.

    Args:
        fetch_timestamp: Coroutine function returning a block's timestamp in
            epoch seconds (e.g. ``LiquidPledgingReader.get_block_timestamp``)
        capacity: Maximum number of cached blocks (default: 50)
    """

    def __init__(self, fetch_timestamp: BlockFetcher, capacity: int = 50):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._fetch_timestamp = fetch_timestamp
        self.capacity = capacity
        self._times: dict[int, datetime] = {}
        self._in_flight: dict[int, asyncio.Task[datetime]] = {}

    def __len__(self) -> int:
        return len(self._times)

    def __contains__(self, block_number: int) -> bool:
        return block_number in self._times

    async def resolve(self, block_number: int) -> datetime:
        """Return the timestamp of a block.

        Cached values return immediately. If the block is already being
        fetched, the caller waits on that fetch instead of starting another.
        The fetch runs in its own task, so a cancelled caller does not abort it
        for the other waiters.

        Raises:
            Exception: Whatever the fetcher raised; every waiter receives it
        """
        cached = self._times.get(block_number)
        if cached is not None:
            return cached

        fetch = self._in_flight.get(block_number)
        if fetch is None:
            fetch = asyncio.create_task(self._fetch(block_number))
            self._in_flight[block_number] = fetch
            fetch.add_done_callback(partial(self._fetch_done, block_number))
        else:
            logger.debug("block_times.waiting", block_number=block_number)

        return await asyncio.shield(fetch)

    async def _fetch(self, block_number: int) -> datetime:
        seconds = await self._fetch_timestamp(block_number)
        timestamp = datetime.fromtimestamp(seconds, tz=UTC)
        self._store(block_number, timestamp)
        return timestamp

    def _fetch_done(self, block_number: int, fetch: asyncio.Task) -> None:
        self._in_flight.pop(block_number, None)
        if fetch.cancelled():
            return
        # Retrieving the exception here keeps an unawaited failure from warning on GC
        error = fetch.exception()
        if error is not None:
            logger.debug("block_times.fetch_failed", block_number=block_number, error=str(error))

    def _store(self, block_number: int, timestamp: datetime) -> None:
        self._times[block_number] = timestamp

        if len(self._times) > self.capacity:
            # Keep the most recent blocks
            keep = sorted(self._times, reverse=True)[: self.capacity]
            evicted = len(self._times) - len(keep)
            self._times = {number: self._times[number] for number in keep}
            logger.debug("block_times.evicted", count=evicted, size=len(self._times))
