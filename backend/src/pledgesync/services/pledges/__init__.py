"""Transfer event reconciliation into the donation ledger."""

from pledgesync.services.pledges.block_times import BlockTimestampCache
from pledgesync.services.pledges.event_queue import TransactionEventQueue
from pledgesync.services.pledges.handler import TransferEventHandler
from pledgesync.services.pledges.history import DonationHistoryTracker
from pledgesync.services.pledges.reconciler import DonationReconciler
from pledgesync.services.pledges.retry import MintState, PendingMint, RetryScheduler

__all__ = [
    "BlockTimestampCache",
    "TransactionEventQueue",
    "TransferEventHandler",
    "DonationHistoryTracker",
    "DonationReconciler",
    "MintState",
    "PendingMint",
    "RetryScheduler",
]
