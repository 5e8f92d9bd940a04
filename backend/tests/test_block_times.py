"""Tests for the block timestamp cache.

Tests cover:
- Cache hits skip the fetcher
- Concurrent resolutions of one block share a single fetch
- Capacity bound and eviction of the oldest blocks
- Fetch failures reach every waiter and do not poison the cache
- A cancelled caller does not abort the fetch for other waiters
"""

import asyncio
from datetime import UTC, datetime

import pytest

from pledgesync.services.pledges.block_times import BlockTimestampCache


class SlowFetcher:
    """Counts fetches and blocks until released."""

    def __init__(self, fail: bool = False):
        self.calls: list[int] = []
        self.release = asyncio.Event()
        self.fail = fail

    async def __call__(self, block_number: int) -> int:
        self.calls.append(block_number)
        await self.release.wait()
        if self.fail:
            raise ConnectionError("node unreachable")
        return 1_700_000_000 + block_number


@pytest.mark.asyncio
async def test_resolve_converts_seconds_to_utc_datetime(chain):
    cache = BlockTimestampCache(chain.get_block_timestamp)

    ts = await cache.resolve(10)

    assert ts == datetime.fromtimestamp(1697500010, tz=UTC)
    assert ts.tzinfo is not None


@pytest.mark.asyncio
async def test_cached_block_is_not_fetched_again(chain):
    cache = BlockTimestampCache(chain.get_block_timestamp)

    first = await cache.resolve(7)
    second = await cache.resolve(7)

    assert first == second
    assert chain.block_fetches == [7]


@pytest.mark.asyncio
async def test_concurrent_resolutions_coalesce_into_one_fetch():
    fetcher = SlowFetcher()
    cache = BlockTimestampCache(fetcher)

    waiters = [asyncio.create_task(cache.resolve(42)) for _ in range(5)]
    await asyncio.sleep(0)
    fetcher.release.set()
    results = await asyncio.gather(*waiters)

    assert fetcher.calls == [42]
    assert len(set(results)) == 1
    assert 42 in cache


@pytest.mark.asyncio
async def test_different_blocks_fetch_independently():
    fetcher = SlowFetcher()
    cache = BlockTimestampCache(fetcher)

    waiters = [asyncio.create_task(cache.resolve(n)) for n in (1, 2, 1, 2)]
    await asyncio.sleep(0)
    fetcher.release.set()
    await asyncio.gather(*waiters)

    assert sorted(fetcher.calls) == [1, 2]


@pytest.mark.asyncio
async def test_cache_never_exceeds_capacity(chain):
    cache = BlockTimestampCache(chain.get_block_timestamp, capacity=50)

    for block_number in range(1, 121):
        await cache.resolve(block_number)
        assert len(cache) <= 50

    assert len(cache) == 50


@pytest.mark.asyncio
async def test_eviction_keeps_highest_block_numbers(chain):
    cache = BlockTimestampCache(chain.get_block_timestamp, capacity=3)

    for block_number in (10, 30, 20, 40):
        await cache.resolve(block_number)

    assert 10 not in cache
    assert all(n in cache for n in (20, 30, 40))

    # An old block is evicted immediately after insertion
    await cache.resolve(5)
    assert 5 not in cache
    assert len(cache) == 3


@pytest.mark.asyncio
async def test_fetch_failure_reaches_all_waiters_and_allows_retry():
    fetcher = SlowFetcher(fail=True)
    cache = BlockTimestampCache(fetcher)

    waiters = [asyncio.create_task(cache.resolve(9)) for _ in range(3)]
    await asyncio.sleep(0)
    fetcher.release.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)

    assert all(isinstance(r, ConnectionError) for r in results)
    assert 9 not in cache

    fetcher.fail = False
    ts = await cache.resolve(9)
    assert ts == datetime.fromtimestamp(1_700_000_009, tz=UTC)
    assert fetcher.calls == [9, 9]


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_abort_shared_fetch():
    fetcher = SlowFetcher()
    cache = BlockTimestampCache(fetcher)

    first = asyncio.create_task(cache.resolve(3))
    await asyncio.sleep(0)
    second = asyncio.create_task(cache.resolve(3))
    await asyncio.sleep(0)

    first.cancel()
    with pytest.raises(asyncio.CancelledError):
        await first

    fetcher.release.set()
    ts = await asyncio.wait_for(second, 0.5)

    assert ts == datetime.fromtimestamp(1_700_000_003, tz=UTC)
    assert fetcher.calls == [3]
    assert 3 in cache


@pytest.mark.asyncio
async def test_block_is_resolvable_after_its_only_caller_is_cancelled():
    fetcher = SlowFetcher(fail=True)
    cache = BlockTimestampCache(fetcher)

    caller = asyncio.create_task(cache.resolve(4))
    await asyncio.sleep(0)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    # The orphaned fetch fails and clears itself
    fetcher.release.set()
    for _ in range(5):
        await asyncio.sleep(0)

    fetcher.fail = False
    ts = await asyncio.wait_for(cache.resolve(4), 0.5)

    assert ts == datetime.fromtimestamp(1_700_000_004, tz=UTC)
    assert fetcher.calls == [4, 4]


def test_capacity_must_be_positive(chain):
    with pytest.raises(ValueError):
        BlockTimestampCache(chain.get_block_timestamp, capacity=0)
