"""Donation mutations derived from a transfer's destination pledge."""

from dataclasses import dataclass, fields
from datetime import UTC, datetime
from typing import Any, Optional

from pledgesync.models.donation import DonationStatus
from pledgesync.models.pledge_admin import AdminType, PledgeAdmin
from pledgesync.services.blockchain.liquid_pledging import Pledge, PledgeState
from pledgesync.services.pledges.transfer import TransferContext

INTENDED_PROJECT_FIELDS = frozenset({"intended_project", "intended_project_id", "intended_project_type"})
DELEGATE_FIELDS = frozenset({"delegate", "delegate_id", "delegate_type"})


def compute_donation_status(
    pledge: Pledge,
    admin: PledgeAdmin,
    has_intended_project: bool,
    has_delegate: bool,
) -> DonationStatus:
    """Derive the ledger status of a donation held by ``pledge``."""
    if pledge.pledge_state == PledgeState.PAYING:
        return DonationStatus.PAYING
    if pledge.pledge_state == PledgeState.PAID:
        return DonationStatus.PAID
    if has_intended_project:
        return DonationStatus.TO_APPROVE
    if admin.type == AdminType.GIVER or has_delegate:
        return DonationStatus.WAITING
    return DonationStatus.COMMITTED


@dataclass(frozen=True)
class DonationMutation:
    """Partial donation update.

    Optional fields left as ``None`` are not touched. Field names listed in
    ``unset`` are cleared.
    """

    amount: str
    payment_status: str
    owner: int
    owner_id: str
    owner_type: str
    pledge_id: str
    commit_time: datetime
    status: DonationStatus
    intended_project: Optional[int] = None
    intended_project_id: Optional[str] = None
    intended_project_type: Optional[str] = None
    delegate: Optional[int] = None
    delegate_id: Optional[str] = None
    delegate_type: Optional[str] = None
    unset: frozenset[str] = frozenset()

    def as_patch(self) -> dict[str, Any]:
        """Render as a column to value mapping for ``DonationRepository.patch``."""
        patch = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "unset" and getattr(self, f.name) is not None
        }
        patch.update({name: None for name in self.unset})
        return patch


def build_transfer_mutation(context: TransferContext) -> DonationMutation:
    """Compute how the matched donation looks once it sits in the destination pledge."""
    to_pledge = context.to_pledge
    to_admin = context.to_admin
    donation = context.donation
    intended_project = context.intended_project
    delegate = context.delegate

    # Pledge commit time is in seconds
    if to_pledge.commit_time > 0:
        commit_time = datetime.fromtimestamp(to_pledge.commit_time, tz=UTC)
    else:
        commit_time = context.timestamp

    values: dict[str, Any] = {}
    unset: set[str] = set()

    if intended_project is not None:
        values.update(
            intended_project=to_pledge.intended_project,
            intended_project_id=intended_project.type_id,
            intended_project_type=intended_project.type.value,
        )
    elif donation.intended_project:
        unset |= INTENDED_PROJECT_FIELDS

    # Delegates lose their rights once the owner starts withdrawing
    if (delegate is None or to_pledge.pledge_state == PledgeState.PAYING) and (
        donation.delegate is not None
    ):
        unset |= DELEGATE_FIELDS
    elif delegate is not None and to_pledge.pledge_state != PledgeState.PAYING:
        values.update(
            delegate=delegate.id,
            delegate_id=delegate.type_id,
            delegate_type=delegate.type.value,
        )

    return DonationMutation(
        amount=context.amount,
        payment_status=to_pledge.pledge_state.payment_status,
        owner=to_pledge.owner,
        owner_id=to_admin.type_id,
        owner_type=to_admin.type.value,
        pledge_id=context.to_pledge_id,
        commit_time=commit_time,
        status=compute_donation_status(
            to_pledge, to_admin, intended_project is not None, delegate is not None
        ),
        unset=frozenset(unset),
        **values,
    )


def milestone_payment_status(to_pledge: Pledge, to_admin: PledgeAdmin) -> Optional[str]:
    """Milestone status implied by a transfer into a paying/paid pledge, if any."""
    if to_admin.type != AdminType.MILESTONE or not to_pledge.is_paying_or_paid:
        return None
    return "Paying" if to_pledge.pledge_state == PledgeState.PAYING else "Paid"
