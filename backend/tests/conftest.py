"""pytest fixtures for pledgesync tests.

Provides:
- utc_timezone: Autouse fixture enforcing UTC timezone
- postgres_container: Session-scoped testcontainer PostgreSQL instance
- session: Function-scoped database session with table truncation
- ledger / uow_factory: In-memory unit of work for reconciliation tests
- chain: In-memory LiquidPledging reader
"""

import os
from datetime import UTC, datetime
from typing import AsyncGenerator
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

os.environ.setdefault("APP_ENV", "test")

from pledgesync import models  # noqa: E402,F401
from pledgesync.core.database import setup_db_session  # noqa: E402
from pledgesync.models.donation import Donation, DonationStatus  # noqa: E402
from pledgesync.models.pledge_admin import AdminType, PledgeAdmin  # noqa: E402
from pledgesync.services.blockchain.liquid_pledging import (  # noqa: E402
    Pledge,
    PledgeDelegate,
    PledgeState,
)

TX_HASH = "0x" + "ab" * 32
OTHER_TX_HASH = "0x" + "cd" * 32
BLOCK_TS = 1697500000  # 2023-10-17 00:00:00 UTC


@pytest.fixture(scope="session", autouse=True)
def utc_timezone():
    """Enforce UTC timezone for all tests."""
    os.environ["TZ"] = "UTC"
    yield


@pytest.fixture(scope="session")
def postgres_container():
    """Provide session-scoped PostgreSQL container.

    Skips the dependent tests when Docker is not reachable.
    """
    try:
        from testcontainers.postgres import PostgresContainer

        container = PostgresContainer(
            image="postgres:17",
            username="test",
            password="test",
            dbname="test_pledgesync",
        )
        container.start()
    except Exception as e:
        pytest.skip(f"PostgreSQL container unavailable: {e}")

    try:
        yield container
    finally:
        container.stop()


@pytest_asyncio.fixture(scope="function")
async def session(postgres_container) -> AsyncGenerator[AsyncSession, None]:
    """Provide function-scoped database session with table truncation."""
    db_url = postgres_container.get_connection_url(driver="psycopg")
    session_factory = setup_db_session(db_url, pool_size=5)

    async with session_factory() as session:
        async with session.bind.begin() as conn:  # type: ignore[union-attr]
            await conn.run_sync(SQLModel.metadata.create_all)

        yield session

        await session.rollback()

        # Dependent tables first
        await session.execute(text("DELETE FROM donation_history"))
        await session.execute(text("DELETE FROM donations"))
        await session.execute(text("DELETE FROM pledge_admins"))
        await session.execute(text("DELETE FROM milestones"))
        await session.commit()


# In-memory ledger


class FakeDonationRepository:
    """Records create/patch calls and keeps donations in insertion order."""

    def __init__(self):
        self.rows: dict[UUID, Donation] = {}
        self.created: list[Donation] = []
        self.patches: list[tuple[UUID, dict]] = []
        self.calls: list[str] = []

    def seed(self, donation: Donation) -> Donation:
        self.rows[donation.id] = donation
        return donation

    async def find_by_tx_hash(self, tx_hash: str) -> list[Donation]:
        return [d for d in self.rows.values() if d.tx_hash == tx_hash]

    async def find_by_pledge_id(self, pledge_id: str) -> list[Donation]:
        return [d for d in self.rows.values() if d.pledge_id == pledge_id]

    async def create(self, donation: Donation) -> Donation:
        self.calls.append(f"create:{donation.pledge_id}")
        self.rows[donation.id] = donation
        self.created.append(donation)
        return donation

    async def patch(self, donation_id: UUID, changes: dict) -> Donation:
        self.calls.append(f"patch:{donation_id}")
        self.patches.append((donation_id, dict(changes)))
        donation = self.rows[donation_id]
        for field, value in changes.items():
            setattr(donation, field, value)
        return donation


class FakeDonationHistoryRepository:
    def __init__(self):
        self.entries = []

    async def add(self, entry):
        self.entries.append(entry)
        return entry


class FakePledgeAdminRepository:
    def __init__(self):
        self.admins: dict[int, PledgeAdmin] = {}

    def seed(self, admin: PledgeAdmin) -> PledgeAdmin:
        self.admins[admin.id] = admin
        return admin

    async def get(self, admin_id: int) -> PledgeAdmin | None:
        return self.admins.get(int(admin_id))


class FakeMilestoneRepository:
    def __init__(self):
        self.patches: list[tuple[str, str, bool]] = []

    async def patch_status(self, milestone_id: str, status: str, mined: bool = True) -> bool:
        self.patches.append((milestone_id, status, mined))
        return True


class FakeUnitOfWork:
    """Shares one in-memory store across every unit of work."""

    def __init__(self):
        self.donations = FakeDonationRepository()
        self.donation_history = FakeDonationHistoryRepository()
        self.pledge_admins = FakePledgeAdminRepository()
        self.milestones = FakeMilestoneRepository()
        self.commits = 0
        self.rollbacks = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commits += 1
        else:
            self.rollbacks += 1
        return False


@pytest.fixture
def ledger() -> FakeUnitOfWork:
    """In-memory ledger seeded with one admin of each type.

    Admin ids: 1 giver, 2 dac, 3 campaign, 4 milestone, 5 second campaign.
    """
    uow = FakeUnitOfWork()
    uow.pledge_admins.seed(
        PledgeAdmin(id=1, type=AdminType.GIVER, type_id="0xGiver", address="0x" + "11" * 20)
    )
    uow.pledge_admins.seed(PledgeAdmin(id=2, type=AdminType.DAC, type_id="dac-1", title="DAC"))
    uow.pledge_admins.seed(
        PledgeAdmin(id=3, type=AdminType.CAMPAIGN, type_id="campaign-1", title="Campaign")
    )
    uow.pledge_admins.seed(
        PledgeAdmin(id=4, type=AdminType.MILESTONE, type_id="milestone-1", title="Milestone")
    )
    uow.pledge_admins.seed(
        PledgeAdmin(id=5, type=AdminType.CAMPAIGN, type_id="campaign-2", title="Campaign 2")
    )
    return uow


@pytest.fixture
def uow_factory(ledger):
    async def _create_uow():
        return ledger

    return _create_uow


class FakeChain:
    """In-memory LiquidPledging reader."""

    def __init__(self):
        self.pledges: dict[str, Pledge] = {}
        self.delegates: dict[tuple[str, int], PledgeDelegate] = {}
        self.block_fetches: list[int] = []

    def add_pledge(
        self,
        pledge_id: str,
        owner: int,
        amount: str = "100",
        n_delegates: int = 0,
        intended_project: int = 0,
        commit_time: int = 0,
        old_pledge: str = "0",
        state: PledgeState = PledgeState.NORMAL,
    ) -> Pledge:
        pledge = Pledge(
            pledge_id=pledge_id,
            amount=amount,
            owner=owner,
            n_delegates=n_delegates,
            intended_project=intended_project,
            commit_time=commit_time,
            old_pledge=old_pledge,
            pledge_state=state,
        )
        self.pledges[pledge_id] = pledge
        return pledge

    def add_delegate(self, pledge_id: str, index: int, id_delegate: int) -> None:
        self.delegates[(pledge_id, index)] = PledgeDelegate(
            id_delegate=id_delegate, address="0x" + "22" * 20, name="delegate"
        )

    async def get_pledge(self, pledge_id: str) -> Pledge:
        return self.pledges[str(pledge_id)]

    async def get_pledge_delegate(self, pledge_id: str, index: int) -> PledgeDelegate:
        return self.delegates[(str(pledge_id), int(index))]

    async def get_block_timestamp(self, block_number: int) -> int:
        self.block_fetches.append(block_number)
        return BLOCK_TS + block_number


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def make_donation():
    """Factory for donations sitting in a pledge."""

    def _make(
        pledge_id: str,
        amount: str = "100",
        owner: int = 1,
        tx_hash: str = TX_HASH,
        **overrides,
    ) -> Donation:
        fields = dict(
            giver_address="0x" + "11" * 20,
            amount=amount,
            pledge_id=pledge_id,
            owner=owner,
            owner_id="0xGiver",
            owner_type="giver",
            status=DonationStatus.WAITING,
            payment_status="Pledged",
            tx_hash=tx_hash,
        )
        fields.update(overrides)
        return Donation(**fields)

    return _make


@pytest.fixture
def block_time() -> datetime:
    return datetime.fromtimestamp(BLOCK_TS, tz=UTC)
