"""Milestone repository - payment status updates only."""

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from pledgesync.models.milestone import Milestone


class MilestoneRepository:
    """Repository for Milestone payment fields."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def patch_status(self, milestone_id: str, status: str, mined: bool = True) -> bool:
        """Set a milestone's payment status.

        Args:
            milestone_id: Milestone identifier (PledgeAdmin.type_id)
            status: "Paying" or "Paid"
            mined: Whether the status change is confirmed on-chain

        Returns:
            True if a milestone row was updated, False if it does not exist
        """
        result = await self.session.execute(
            update(Milestone)
            .where(Milestone.id == milestone_id)  # type: ignore[arg-type]
            .values(status=status, mined=mined, updated_at=datetime.utcnow())
        )
        await self.session.flush()
        return result.rowcount > 0  # type: ignore[attr-defined]
