"""Pending-mint state machine and the timer used to retry mints."""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

import structlog

from pledgesync.services.exceptions import InvalidStateTransition

logger = structlog.get_logger()


class MintState(str, Enum):
    """Processing state of a mint (``from == '0'``) Transfer event."""

    PENDING = "pending"
    RETRY_SCHEDULED = "retry_scheduled"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class PendingMint:
    """Tracks attempts to attach a minted pledge to its donation.

    The last allowed attempt creates the donation when none exists.
    """

    tx_hash: str
    pledge_id: str
    amount: str
    max_retries: int = 1
    attempts: int = 0
    state: MintState = MintState.PENDING

    @property
    def can_retry(self) -> bool:
        return self.attempts <= self.max_retries

    @property
    def is_final_attempt(self) -> bool:
        return self.attempts > self.max_retries

    @property
    def is_terminal(self) -> bool:
        return self.state in (MintState.RESOLVED, MintState.FAILED)

    def begin_attempt(self) -> None:
        """Start processing, either the first time or after a scheduled retry.

        Raises:
            InvalidStateTransition: If the mint is terminal or already mid-attempt
        """
        first = self.state == MintState.PENDING and self.attempts == 0
        if not first and self.state != MintState.RETRY_SCHEDULED:
            raise InvalidStateTransition(
                f"Cannot begin attempt from {self.state.value} after {self.attempts} attempt(s)."
            )
        self.attempts += 1
        self.state = MintState.PENDING

    def mark_retry_scheduled(self) -> None:
        """Transition from pending to retry_scheduled.

        Raises:
            InvalidStateTransition: If not pending or retries are exhausted
        """
        if self.state != MintState.PENDING:
            raise InvalidStateTransition(
                f"Cannot schedule retry from {self.state.value}. Mint must be pending."
            )
        if not self.can_retry:
            raise InvalidStateTransition(
                f"Cannot schedule retry after {self.attempts} attempt(s), "
                f"max_retries is {self.max_retries}."
            )
        self.state = MintState.RETRY_SCHEDULED

    def mark_resolved(self) -> None:
        if self.state != MintState.PENDING:
            raise InvalidStateTransition(
                f"Cannot mark resolved from {self.state.value}. Mint must be pending."
            )
        self.state = MintState.RESOLVED

    def mark_failed(self) -> None:
        if self.is_terminal:
            raise InvalidStateTransition(
                f"Cannot mark failed from terminal state {self.state.value}."
            )
        self.state = MintState.FAILED


class RetryScheduler:
    """Runs callbacks after a fixed delay on the event loop.

    Args:
        delay_seconds: Delay before each scheduled callback runs
    """

    def __init__(self, delay_seconds: float = 5):
        self.delay_seconds = delay_seconds
        self._timers: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._timers)

    def schedule(self, callback: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """Run ``callback`` once ``delay_seconds`` have elapsed."""
        timer = asyncio.create_task(self._fire(callback))
        self._timers.add(timer)
        timer.add_done_callback(self._timers.discard)
        return timer

    async def join(self) -> None:
        """Wait for every scheduled callback to finish."""
        while self._timers:
            await asyncio.gather(*list(self._timers), return_exceptions=True)

    async def _fire(self, callback: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self.delay_seconds)
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "retry.callback_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
