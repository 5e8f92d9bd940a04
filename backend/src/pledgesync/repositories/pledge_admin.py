"""PledgeAdmin repository (read-only for transfer processing)."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pledgesync.models.pledge_admin import PledgeAdmin


class PledgeAdminRepository:
    """Repository for PledgeAdmin entities."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, admin_id: int) -> PledgeAdmin | None:
        """Retrieve pledge admin by on-chain admin id.

        Args:
            admin_id: LiquidPledging admin id

        Returns:
            PledgeAdmin if found, None otherwise
        """
        result = await self.session.execute(
            select(PledgeAdmin).where(PledgeAdmin.id == int(admin_id))  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def add(self, admin: PledgeAdmin) -> PledgeAdmin:
        self.session.add(admin)
        await self.session.flush()
        return admin
