"""Entry point for LiquidPledging Transfer events.

Events are serialized per transaction hash, timestamped through the block
cache and handed to the reconciliation engine. Mints whose donation does not
exist yet are retried after a fixed delay; the transaction stays blocked
while the retry is pending so its later events keep their order.
"""

from functools import partial
from typing import Any, Mapping, Optional

import structlog

from pledgesync.services.exceptions import (
    DonationNotYetCreatedError,
    PermanentError,
)
from pledgesync.services.pledges.block_times import BlockTimestampCache
from pledgesync.services.pledges.event_queue import TransactionEventQueue
from pledgesync.services.pledges.reconciler import DonationReconciler
from pledgesync.services.pledges.retry import PendingMint, RetryScheduler
from pledgesync.services.pledges.transfer import TransferEvent

logger = structlog.get_logger()


class TransferEventHandler:
    """Receives raw Transfer events and drives their reconciliation.

    Args:
        reconciler: Donation reconciliation engine
        block_times: Block timestamp cache
        queue: Per-transaction ordering queue
        scheduler: Timer used for mint retries
        max_retries: Retries before a missing mint donation is created
    """

    def __init__(
        self,
        reconciler: DonationReconciler,
        block_times: BlockTimestampCache,
        queue: Optional[TransactionEventQueue] = None,
        scheduler: Optional[RetryScheduler] = None,
        max_retries: int = 1,
    ):
        self.reconciler = reconciler
        self.block_times = block_times
        self.queue = queue or TransactionEventQueue()
        self.scheduler = scheduler or RetryScheduler()
        self.max_retries = max_retries
        self.pending_mints: dict[tuple[str, str], PendingMint] = {}

    def on_transfer_event(self, raw_event: Mapping[str, Any]) -> TransferEvent:
        """Accept a web3 Transfer event for processing.

        Processing happens asynchronously; use ``join()`` to wait for it.

        Returns:
            The parsed event

        Raises:
            TypeError: If the event is not a Transfer event
            ValueError: If the event is malformed
        """
        event = TransferEvent.from_raw(raw_event)

        logger.info(
            "transfer.received",
            from_pledge_id=event.from_pledge_id,
            to_pledge_id=event.to_pledge_id,
            amount=event.amount,
            tx_hash=event.tx_hash,
            block_number=event.block_number,
        )

        mint = None
        if event.is_mint:
            mint = PendingMint(
                tx_hash=event.tx_hash,
                pledge_id=event.to_pledge_id,
                amount=event.amount,
                max_retries=self.max_retries,
            )

        self.queue.submit(event.tx_hash, partial(self._process, event, mint))
        return event

    async def join(self) -> None:
        """Wait until all accepted events, including scheduled retries, are done."""
        while True:
            await self.queue.join()
            await self.scheduler.join()
            if not self.scheduler.pending and not self.queue.running:
                return

    async def _process(self, event: TransferEvent, mint: Optional[PendingMint]) -> None:
        finished = True
        try:
            timestamp = await self.block_times.resolve(event.block_number)

            if mint is not None:
                finished = await self._process_mint(event, mint)
            else:
                await self.reconciler.transfer(
                    event.from_pledge_id,
                    event.to_pledge_id,
                    event.amount,
                    timestamp,
                    event.tx_hash,
                )
        except PermanentError as e:
            logger.error(
                "transfer.dropped",
                error=str(e),
                error_type=type(e).__name__,
                from_pledge_id=event.from_pledge_id,
                to_pledge_id=event.to_pledge_id,
                amount=event.amount,
                tx_hash=event.tx_hash,
                block_number=event.block_number,
            )
        except Exception as e:
            logger.error(
                "transfer.failed",
                error=str(e),
                error_type=type(e).__name__,
                from_pledge_id=event.from_pledge_id,
                to_pledge_id=event.to_pledge_id,
                amount=event.amount,
                tx_hash=event.tx_hash,
                block_number=event.block_number,
                exc_info=True,
            )
        finally:
            if mint is not None and finished and not mint.is_terminal:
                mint.mark_failed()
            if mint is not None and mint.is_terminal:
                self.pending_mints.pop((mint.tx_hash, mint.pledge_id), None)
            if finished:
                self.queue.purge(event.tx_hash)

    async def _process_mint(self, event: TransferEvent, mint: PendingMint) -> bool:
        """Run one mint attempt.

        Returns:
            False when a retry was scheduled and the transaction stays blocked
        """
        self.pending_mints[(mint.tx_hash, mint.pledge_id)] = mint
        mint.begin_attempt()

        try:
            await self.reconciler.new_donation(
                event.to_pledge_id,
                event.amount,
                event.tx_hash,
                create_if_missing=mint.is_final_attempt,
            )
        except DonationNotYetCreatedError:
            if not mint.can_retry:
                raise

            mint.mark_retry_scheduled()
            self.scheduler.schedule(partial(self._process, event, mint))
            logger.info(
                "mint.retry_scheduled",
                pledge_id=mint.pledge_id,
                tx_hash=mint.tx_hash,
                attempt=mint.attempts,
                delay_seconds=self.scheduler.delay_seconds,
            )
            return False

        mint.mark_resolved()
        logger.debug("mint.resolved", pledge_id=mint.pledge_id, tx_hash=mint.tx_hash)
        return True
