"""DonationHistory repository - append-only."""

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pledgesync.models.donation_history import DonationHistory


class DonationHistoryRepository:
    """Repository for DonationHistory entities.

    Exposes no update or delete: history rows are immutable once written.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, entry: DonationHistory) -> DonationHistory:
        """Append a history entry.

        Args:
            entry: DonationHistory entity to persist

        Returns:
            Persisted entry with generated ID
        """
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_for_donation(self, donation_id: UUID) -> list[DonationHistory]:
        """Retrieve history entries that reference a donation, oldest first.

        Includes entries where the donation is the origin of a split.
        """
        result = await self.session.execute(
            select(DonationHistory)
            .where(
                or_(
                    DonationHistory.donation_id == donation_id,  # type: ignore[arg-type]
                    DonationHistory.from_donation_id == donation_id,  # type: ignore[arg-type]
                )
            )
            .order_by(DonationHistory.created_at.asc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())
