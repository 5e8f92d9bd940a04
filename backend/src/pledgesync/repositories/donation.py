"""Donation repository for the donation ledger.

Provides the find/create/patch contract the reconciliation engine relies on.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pledgesync.models.donation import Donation


class DonationNotFoundError(LookupError):
    """Raised when patching a donation id that does not exist."""


class DonationRepository:
    """Repository for Donation entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get_by_id(self, donation_id: UUID) -> Donation | None:
        result = await self.session.execute(select(Donation).where(Donation.id == donation_id))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def find_by_tx_hash(self, tx_hash: str) -> list[Donation]:
        """Retrieve donations created by a transaction.

        Ordered by creation time so callers that take the first row get the
        oldest record.

        Args:
            tx_hash: Transaction hash (0x...)

        Returns:
            Matching donations, oldest first
        """
        result = await self.session.execute(
            select(Donation)
            .where(Donation.tx_hash == tx_hash)  # type: ignore[arg-type]
            .order_by(Donation.created_at.asc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def find_by_pledge_id(self, pledge_id: str) -> list[Donation]:
        """Retrieve donations currently attached to a pledge.

        Args:
            pledge_id: On-chain pledge id

        Returns:
            Matching donations, oldest first
        """
        result = await self.session.execute(
            select(Donation)
            .where(Donation.pledge_id == pledge_id)  # type: ignore[arg-type]
            .order_by(Donation.created_at.asc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def create(self, donation: Donation) -> Donation:
        """Persist new donation to database.

        Args:
            donation: Donation entity to persist

        Returns:
            Persisted donation with generated ID
        """
        self.session.add(donation)
        await self.session.flush()
        return donation

    async def patch(self, donation_id: UUID, changes: dict[str, Any]) -> Donation:
        """Apply a partial update to a donation.

        A ``None`` value clears the column.

        Args:
            donation_id: Donation's unique identifier
            changes: Column name to new value mapping

        Returns:
            Updated donation

        Raises:
            DonationNotFoundError: If no donation has this id
        """
        donation = await self.get_by_id(donation_id)
        if donation is None:
            raise DonationNotFoundError(f"Donation {donation_id} not found")

        for field, value in changes.items():
            setattr(donation, field, value)
        donation.updated_at = datetime.utcnow()

        await self.session.flush()
        return donation
