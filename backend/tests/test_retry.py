"""State transition tests for pending mints and the retry scheduler."""

import asyncio

import pytest

from pledgesync.services.exceptions import InvalidStateTransition
from pledgesync.services.pledges.retry import MintState, PendingMint, RetryScheduler


def make_mint(max_retries: int = 1) -> PendingMint:
    return PendingMint(tx_hash="0xtx", pledge_id="5", amount="100", max_retries=max_retries)


def test_single_retry_lifecycle():
    """pending -> retry_scheduled -> pending -> resolved, creating on the last attempt."""
    mint = make_mint()

    mint.begin_attempt()
    assert mint.state == MintState.PENDING
    assert mint.attempts == 1
    assert not mint.is_final_attempt
    assert mint.can_retry

    mint.mark_retry_scheduled()
    assert mint.state == MintState.RETRY_SCHEDULED

    mint.begin_attempt()
    assert mint.state == MintState.PENDING
    assert mint.attempts == 2
    assert mint.is_final_attempt
    assert not mint.can_retry

    mint.mark_resolved()
    assert mint.state == MintState.RESOLVED
    assert mint.is_terminal


def test_zero_retries_creates_on_first_attempt():
    mint = make_mint(max_retries=0)
    mint.begin_attempt()

    assert mint.is_final_attempt
    with pytest.raises(InvalidStateTransition):
        mint.mark_retry_scheduled()


def test_cannot_retry_after_exhausting_retries():
    mint = make_mint(max_retries=1)
    mint.begin_attempt()
    mint.mark_retry_scheduled()
    mint.begin_attempt()

    with pytest.raises(InvalidStateTransition) as exc_info:
        mint.mark_retry_scheduled()

    assert "max_retries" in str(exc_info.value)


def test_cannot_begin_attempt_twice_without_scheduling():
    mint = make_mint()
    mint.begin_attempt()

    with pytest.raises(InvalidStateTransition):
        mint.begin_attempt()


@pytest.mark.parametrize("terminal", ["resolved", "failed"])
def test_terminal_states_cannot_transition(terminal):
    mint = make_mint()
    mint.begin_attempt()
    getattr(mint, f"mark_{terminal}")()

    with pytest.raises(InvalidStateTransition):
        mint.begin_attempt()
    with pytest.raises(InvalidStateTransition):
        mint.mark_failed()
    with pytest.raises(InvalidStateTransition):
        mint.mark_resolved()


def test_failed_reachable_while_retry_scheduled():
    mint = make_mint()
    mint.begin_attempt()
    mint.mark_retry_scheduled()

    mint.mark_failed()
    assert mint.state == MintState.FAILED


@pytest.mark.asyncio
async def test_scheduler_runs_callback_after_delay():
    scheduler = RetryScheduler(delay_seconds=0.02)
    ran: list[float] = []
    loop = asyncio.get_running_loop()
    started = loop.time()

    async def callback():
        ran.append(loop.time() - started)

    scheduler.schedule(callback)
    assert scheduler.pending == 1

    await scheduler.join()

    assert len(ran) == 1
    assert ran[0] >= 0.015
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_scheduler_logs_and_survives_failing_callback():
    scheduler = RetryScheduler(delay_seconds=0)

    async def boom():
        raise RuntimeError("retry failed")

    timer = scheduler.schedule(boom)
    await scheduler.join()

    assert timer.done()
    assert timer.exception() is None
