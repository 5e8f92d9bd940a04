"""Donation history tracking.

Derives at most one audit entry per transfer. Only transfers that land in a
pledge in the Normal state are recorded; payment lifecycle changes, canceled
payments and vetoed delegations are not tracked yet.
"""

from typing import Optional

import structlog

from pledgesync.models.donation_history import DonationHistory, HistoryKind
from pledgesync.models.pledge_admin import AdminType
from pledgesync.services.blockchain.liquid_pledging import PledgeState
from pledgesync.services.pledges.transfer import TransferContext

logger = structlog.get_logger()


def _is_new_donation(context: TransferContext) -> bool:
    # A giver destination only counts when it is the sole delegate link
    return (
        context.from_pledge.old_pledge == "0"
        and (context.to_admin.type != AdminType.GIVER or context.to_pledge.n_delegates == 1)
        and not context.to_pledge.has_intended_project
    )


def _is_committed_delegation(context: TransferContext) -> bool:
    return (
        context.from_pledge.has_intended_project
        and context.from_pledge.intended_project == context.to_pledge.owner
    )


def _is_campaign_to_milestone(context: TransferContext) -> bool:
    return (
        context.from_admin.type == AdminType.CAMPAIGN
        and context.to_admin.type == AdminType.MILESTONE
    )


def classify_transfer(context: TransferContext) -> Optional[HistoryKind]:
    """Decide which kind of history entry a transfer produces, if any."""
    if context.to_pledge.pledge_state != PledgeState.NORMAL:
        return None

    if context.to_donation is not None:
        return HistoryKind.REGULAR_TRANSFER

    if _is_new_donation(context):
        return HistoryKind.NEW_DONATION
    if _is_committed_delegation(context):
        return HistoryKind.COMMITTED_DELEGATION
    if _is_campaign_to_milestone(context):
        return HistoryKind.CAMPAIGN_TO_MILESTONE

    return None


def build_history_entry(context: TransferContext) -> Optional[DonationHistory]:
    kind = classify_transfer(context)
    if kind is None:
        return None

    donation = context.donation
    entry = DonationHistory(
        kind=kind,
        donation_id=donation.id,
        owner_id=context.to_admin.type_id,
        owner_type=context.to_admin.type.value,
        amount=context.amount,
        tx_hash=donation.tx_hash,
        giver_address=donation.giver_address,
        created_at=context.timestamp,
    )

    if context.delegate is not None:
        entry.delegate_id = context.delegate.type_id
        entry.delegate_type = context.delegate.type.value

    if kind == HistoryKind.REGULAR_TRANSFER and context.to_donation is not None:
        entry.donation_id = context.to_donation.id
        entry.from_donation_id = donation.id
        entry.from_owner_id = context.from_admin.type_id
        entry.from_owner_type = context.from_admin.type.value

    return entry


class DonationHistoryTracker:
    """Appends history entries through the unit of work's history repository."""

    async def track(self, uow, context: TransferContext) -> Optional[DonationHistory]:
        """Record the history entry for a reconciled transfer.

        Args:
            uow: Unit of work the donation writes happened in
            context: Transfer context, with ``to_donation`` set for splits

        Returns:
            The persisted entry, or None when the transfer is not tracked
        """
        entry = build_history_entry(context)

        if entry is None:
            logger.debug(
                "history.skipped",
                pledge_state=context.to_pledge.pledge_state.name,
                **context.log_context(),
            )
            return None

        entry = await uow.donation_history.add(entry)
        logger.info(
            "history.recorded",
            kind=entry.kind.value,
            history_id=str(entry.id),
            **context.log_context(),
        )
        return entry
