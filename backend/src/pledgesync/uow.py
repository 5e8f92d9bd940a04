"""Unit of Work pattern for the donation ledger.

Provides transaction management with automatic commit/rollback and access to all repositories.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pledgesync.repositories.donation import DonationRepository
from pledgesync.repositories.donation_history import DonationHistoryRepository
from pledgesync.repositories.milestone import MilestoneRepository
from pledgesync.repositories.pledge_admin import PledgeAdminRepository

logger = structlog.get_logger()


class UnitOfWork:
    """Unit of Work pattern implementation.

    Manages database transactions and provides access to all repositories.
    Use as async context manager for automatic commit/rollback.

    Example:
        async with await uow_factory() as uow:
            donations = await uow.donations.find_by_tx_hash(tx_hash)
            await uow.donations.patch(donations[0].id, {"status": "committed"})
            # Automatically commits on successful exit
            # Automatically rolls back on exception
    """

    def __init__(self, session: AsyncSession):
        """Initialize UnitOfWork with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

        self.donations = DonationRepository(session)
        self.donation_history = DonationHistoryRepository(session)
        self.pledge_admins = PledgeAdminRepository(session)
        self.milestones = MilestoneRepository(session)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager with automatic commit/rollback.

        Returns:
            False: Always re-raise exceptions after rollback
        """
        try:
            if exc_type is None:
                await self.session.commit()
                logger.debug("transaction.committed")
            else:
                await self.session.rollback()
                logger.debug("transaction.rolled_back", exc_type=exc_type.__name__)
        finally:
            await self.session.close()

        return False


def create_uow_factory(session_factory: async_sessionmaker[AsyncSession]):
    """Create a factory function that produces UnitOfWork instances.

    Args:
        session_factory: SQLAlchemy async session factory

    Returns:
        Callable that creates UnitOfWork instances from new sessions

    Example:
        session_factory = setup_db_session(db_url)
        uow_factory = create_uow_factory(session_factory)

        async with await uow_factory() as uow:
            await uow.donations.create(donation)
    """

    async def _create_uow():
        session = session_factory()
        return UnitOfWork(session)

    return _create_uow
