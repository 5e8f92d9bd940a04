"""Locate the donation a transfer acts on.

A pledge can back several donations (the same giver donating the same
amount to the same receiver twice ends up in one pledge), so the transfer's
tx hash and amount are used to narrow the candidates down.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from pledgesync.models.donation import Donation

TiebreakPolicy = Callable[[Sequence[Donation]], Donation]


def first_candidate(candidates: Sequence[Donation]) -> Donation:
    """Pick the first donation in repository order (oldest first)."""
    return candidates[0]


class MatchStrategy(str, Enum):
    """Which rule identified the donation."""

    PLEDGE_ID = "pledge_id"
    TX_HASH = "tx_hash"
    AMOUNT = "amount"


@dataclass(frozen=True)
class DonationMatch:
    donation: Donation
    strategy: MatchStrategy
    candidate_count: int

    @property
    def ambiguous(self) -> bool:
        """More than one donation fit and the tiebreak policy chose."""
        return self.candidate_count > 1


def select_donation(
    donations: Sequence[Donation],
    tx_hash: str,
    amount: str,
    tiebreak: TiebreakPolicy = first_candidate,
) -> Optional[DonationMatch]:
    """Choose the donation held by the source pledge that a transfer moved.

    Args:
        donations: Donations currently attached to the source pledge
        tx_hash: Transaction hash of the Transfer event
        amount: Transferred amount (wei, integer string)
        tiebreak: Chooses among several donations with the transferred amount

    Returns:
        The match, or None when no donation fits
    """
    if len(donations) == 1:
        return DonationMatch(donations[0], MatchStrategy.PLEDGE_ID, 1)

    # Doesn't help when the payment is confirmed from the vault
    by_tx_hash = [d for d in donations if d.tx_hash == tx_hash]
    if len(by_tx_hash) == 1:
        return DonationMatch(by_tx_hash[0], MatchStrategy.TX_HASH, 1)

    by_amount = [d for d in donations if d.amount == amount]
    if by_amount:
        return DonationMatch(tiebreak(by_amount), MatchStrategy.AMOUNT, len(by_amount))

    return None
