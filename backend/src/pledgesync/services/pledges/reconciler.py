"""Donation reconciliation engine.

Turns LiquidPledging Transfer events into donation ledger writes:

- Mint (``from == '0'``): attach the new pledge to the donation the UI created
  for the transaction, or create it on the last attempt
- Full transfer: the matched donation moves to the destination pledge
- Split: the matched donation keeps the remainder and a copy is created for
  the transferred amount
"""

import asyncio
import dataclasses
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import structlog

from pledgesync.models.donation import Donation, DonationStatus
from pledgesync.models.pledge_admin import PledgeAdmin
from pledgesync.services.blockchain.liquid_pledging import LiquidPledgingReader, Pledge
from pledgesync.services.exceptions import (
    DonationNotYetCreatedError,
    PledgeAdminNotFoundError,
    UnresolvableDonationError,
)
from pledgesync.services.pledges.history import DonationHistoryTracker
from pledgesync.services.pledges.matching import TiebreakPolicy, first_candidate, select_donation
from pledgesync.services.pledges.mutation import (
    build_transfer_mutation,
    compute_donation_status,
    milestone_payment_status,
)
from pledgesync.services.pledges.transfer import TransferContext

logger = structlog.get_logger()

# Generated or joined fields that must not be copied into a split donation
SPLIT_EXCLUDED_FIELDS = frozenset(
    {"id", "created_at", "updated_at", "confirmations", "required_confirmations"}
)


async def gather_named(**awaitables: Optional[Awaitable[Any]]) -> dict[str, Any]:
    """Await several operations concurrently and return their results by name.

    ``None`` entries resolve to ``None``.
    """
    names = [name for name, aw in awaitables.items() if aw is not None]
    results = await asyncio.gather(*(awaitables[name] for name in names))
    resolved: dict[str, Any] = dict.fromkeys(awaitables)
    resolved.update(zip(names, results))
    return resolved


class DonationReconciler:
    """Applies Transfer events to the donation ledger.

    Args:
        uow_factory: Coroutine function returning a new UnitOfWork
        reader: Pledge state reader
        history: History tracker (default: DonationHistoryTracker())
        tiebreak: Picks among donations matched only by amount
    """

    def __init__(
        self,
        uow_factory: Callable[[], Awaitable[Any]],
        reader: LiquidPledgingReader,
        history: Optional[DonationHistoryTracker] = None,
        tiebreak: TiebreakPolicy = first_candidate,
    ):
        self.uow_factory = uow_factory
        self.reader = reader
        self.history = history or DonationHistoryTracker()
        self.tiebreak = tiebreak

    async def new_donation(
        self,
        pledge_id: str,
        amount: str,
        tx_hash: str,
        create_if_missing: bool = False,
    ) -> Donation:
        """Attach a freshly minted pledge to its donation.

        Args:
            pledge_id: Destination pledge of the mint
            amount: Minted amount (wei, integer string)
            tx_hash: Transaction hash of the donation
            create_if_missing: Create the donation when none exists for ``tx_hash``

        Returns:
            The created or updated donation

        Raises:
            DonationNotYetCreatedError: No donation exists and ``create_if_missing`` is False
            PledgeAdminNotFoundError: The pledge owner is unknown
        """
        pledge = await self.reader.get_pledge(pledge_id)

        async with await self.uow_factory() as uow:
            giver = await self._require_admin(uow, pledge.owner)
            existing = await uow.donations.find_by_tx_hash(tx_hash)

            fields = {
                "giver_address": giver.address,
                "amount": amount,
                "pledge_id": pledge_id,
                "owner": pledge.owner,
                "owner_id": giver.type_id,
                "owner_type": giver.type.value,
                "status": compute_donation_status(
                    pledge, giver, pledge.has_intended_project, pledge.n_delegates > 0
                ),
                "payment_status": pledge.pledge_state.payment_status,
            }

            if not existing:
                if not create_if_missing:
                    raise DonationNotYetCreatedError(tx_hash, pledge_id)

                donation = await uow.donations.create(Donation(**fields, tx_hash=tx_hash))
                logger.info(
                    "mint.donation_created",
                    donation_id=str(donation.id),
                    pledge_id=pledge_id,
                    amount=amount,
                    tx_hash=tx_hash,
                )
                return donation

            donation = await uow.donations.patch(existing[0].id, fields)
            logger.info(
                "mint.donation_updated",
                donation_id=str(donation.id),
                pledge_id=pledge_id,
                amount=amount,
                tx_hash=tx_hash,
                status=donation.status,
            )
            return donation

    async def transfer(
        self,
        from_pledge_id: str,
        to_pledge_id: str,
        amount: str,
        timestamp: datetime,
        tx_hash: str,
    ) -> TransferContext:
        """Apply a transfer between two live pledges.

        Returns:
            The reconciled transfer context (``to_donation`` set for splits)

        Raises:
            UnresolvableDonationError: No donation of the source pledge matches
            PledgeAdminNotFoundError: A pledge owner is unknown
        """
        async with await self.uow_factory() as uow:
            context = await self._load_context(
                uow, from_pledge_id, to_pledge_id, amount, timestamp, tx_hash
            )

            if context.is_full_transfer:
                context = await self._apply_full_transfer(uow, context)
            else:
                context = await self._apply_split(uow, context)

            await self.history.track(uow, context)

        milestone_status = milestone_payment_status(context.to_pledge, context.to_admin)
        if milestone_status is not None:
            await self._update_milestone(context.to_admin.type_id, milestone_status, context)

        return context

    async def _load_context(
        self,
        uow,
        from_pledge_id: str,
        to_pledge_id: str,
        amount: str,
        timestamp: datetime,
        tx_hash: str,
    ) -> TransferContext:
        transfer_log = {
            "from_pledge_id": from_pledge_id,
            "to_pledge_id": to_pledge_id,
            "amount": amount,
            "timestamp": timestamp.isoformat(),
            "tx_hash": tx_hash,
        }

        pledges = await gather_named(
            from_pledge=self.reader.get_pledge(from_pledge_id),
            to_pledge=self.reader.get_pledge(to_pledge_id),
        )
        from_pledge: Pledge = pledges["from_pledge"]
        to_pledge: Pledge = pledges["to_pledge"]

        # LiquidPledging lets any delegate in the chain act, only the last one is recognized
        chain_delegate = None
        if to_pledge.n_delegates > 0:
            chain_delegate = self.reader.get_pledge_delegate(to_pledge_id, to_pledge.n_delegates)

        # Ledger reads share one session so they stay sequential beside the chain read
        fetched = await gather_named(
            delegate=chain_delegate,
            ledger=self._load_ledger_side(uow, from_pledge, to_pledge, transfer_log),
        )
        ledger = fetched["ledger"]

        delegate = None
        if fetched["delegate"] is not None:
            delegate = await self._optional_admin(
                uow, fetched["delegate"].id_delegate, "delegate", transfer_log
            )

        match = select_donation(ledger["candidates"], tx_hash, amount, self.tiebreak)
        if match is None:
            logger.error(
                "transfer.unresolvable",
                **transfer_log,
                candidates=[
                    {"id": str(d.id), "amount": d.amount, "tx_hash": d.tx_hash}
                    for d in ledger["candidates"]
                ],
            )
            raise UnresolvableDonationError(from_pledge_id, to_pledge_id, amount, tx_hash)

        if match.ambiguous:
            logger.warning(
                "transfer.ambiguous_match",
                strategy=match.strategy.value,
                candidate_count=match.candidate_count,
                chosen_donation_id=str(match.donation.id),
                **transfer_log,
            )

        return TransferContext(
            from_pledge=from_pledge,
            to_pledge=to_pledge,
            from_admin=ledger["from_admin"],
            to_admin=ledger["to_admin"],
            donation=match.donation,
            amount=amount,
            timestamp=timestamp,
            tx_hash=tx_hash,
            delegate=delegate,
            intended_project=ledger["intended_project"],
        )

    async def _load_ledger_side(
        self, uow, from_pledge: Pledge, to_pledge: Pledge, transfer_log: dict[str, Any]
    ) -> dict:
        intended_project = None
        if to_pledge.has_intended_project:
            intended_project = await self._optional_admin(
                uow, to_pledge.intended_project, "intended_project", transfer_log
            )

        return {
            "from_admin": await self._require_admin(uow, from_pledge.owner),
            "to_admin": await self._require_admin(uow, to_pledge.owner),
            "intended_project": intended_project,
            "candidates": await uow.donations.find_by_pledge_id(from_pledge.pledge_id),
        }

    async def _apply_full_transfer(self, uow, context: TransferContext) -> TransferContext:
        mutation = build_transfer_mutation(context)
        await uow.donations.patch(context.donation.id, mutation.as_patch())

        logger.info(
            "transfer.donation_moved",
            status=mutation.status.value,
            unset=sorted(mutation.unset),
            **context.log_context(),
        )
        return context

    async def _apply_split(self, uow, context: TransferContext) -> TransferContext:
        donation = context.donation
        remaining = int(donation.amount) - int(context.amount)

        if remaining < 0:
            logger.error(
                "transfer.split_exceeds_donation",
                donation_amount=donation.amount,
                **context.log_context(),
            )
            raise UnresolvableDonationError(
                context.from_pledge.pledge_id, context.to_pledge_id, context.amount, context.tx_hash
            )

        # Snapshot before the original is patched
        mutation = build_transfer_mutation(context)
        copied = donation.model_dump(exclude=set(SPLIT_EXCLUDED_FIELDS))
        copied.update(mutation.as_patch())

        if context.amount == "0":
            status = DonationStatus.PAID
        else:
            status = compute_donation_status(
                context.from_pledge,
                context.from_admin,
                bool(donation.intended_project),
                donation.delegate is not None,
            )

        await uow.donations.patch(donation.id, {"status": status, "amount": str(remaining)})
        created = await uow.donations.create(Donation(**copied))

        logger.info(
            "transfer.split_created",
            new_donation_id=str(created.id),
            remaining_amount=str(remaining),
            original_status=status.value,
            new_status=mutation.status.value,
            **context.log_context(),
        )
        return dataclasses.replace(context, to_donation=created)

    async def _update_milestone(
        self, milestone_id: str, status: str, context: TransferContext
    ) -> None:
        # The milestone belongs to another domain; its failure must not undo the transfer
        try:
            async with await self.uow_factory() as uow:
                updated = await uow.milestones.patch_status(milestone_id, status, mined=True)
        except Exception as e:
            logger.error(
                "milestone.patch_failed",
                milestone_id=milestone_id,
                milestone_status=status,
                error=str(e),
                error_type=type(e).__name__,
                **context.log_context(),
            )
            return

        if not updated:
            logger.warning(
                "milestone.missing",
                milestone_id=milestone_id,
                milestone_status=status,
                **context.log_context(),
            )
            return

        logger.info("milestone.payment_status_updated", milestone_id=milestone_id, status=status)

    async def _require_admin(self, uow, admin_id: int) -> PledgeAdmin:
        admin = await uow.pledge_admins.get(admin_id)
        if admin is None:
            raise PledgeAdminNotFoundError(admin_id)
        return admin

    async def _optional_admin(
        self, uow, admin_id: int, role: str, transfer_log: dict[str, Any]
    ) -> Optional[PledgeAdmin]:
        admin = await uow.pledge_admins.get(admin_id)
        if admin is None:
            logger.error(
                "transfer.missing_context",
                role=role,
                admin_id=admin_id,
                **transfer_log,
            )
        return admin
