"""Read-only access to LiquidPledging pledge state.

The reader wraps the synchronous web3 contract API and exposes it as
coroutines so Transfer processing for different transactions can overlap.
"""

import asyncio
from dataclasses import dataclass
from enum import IntEnum

import structlog
from web3 import Web3

from pledgesync.abi import get_contract_abi
from pledgesync.services.exceptions import BlockchainConnectionError

logger = structlog.get_logger()


class PledgeState(IntEnum):
    """On-chain pledge payment state."""

    NORMAL = 0
    PAYING = 1
    PAID = 2

    @property
    def payment_status(self) -> str:
        """Ledger representation mirrored onto donations."""
        return {
            PledgeState.NORMAL: "Pledged",
            PledgeState.PAYING: "Paying",
            PledgeState.PAID: "Paid",
        }[self]


@dataclass(frozen=True)
class Pledge:
    """Snapshot of a pledge as returned by LiquidPledging.getPledge."""

    pledge_id: str
    amount: str
    owner: int
    n_delegates: int
    intended_project: int  # 0 when none
    commit_time: int  # epoch seconds, 0 when unset
    old_pledge: str  # '0' when none
    pledge_state: PledgeState

    @property
    def has_intended_project(self) -> bool:
        return self.intended_project > 0

    @property
    def is_paying_or_paid(self) -> bool:
        return self.pledge_state in (PledgeState.PAYING, PledgeState.PAID)


@dataclass(frozen=True)
class PledgeDelegate:
    """Entry of a pledge's delegation chain."""

    id_delegate: int
    address: str
    name: str


class LiquidPledgingReader:
    """Async accessor for pledges, delegates and block timestamps."""

    def __init__(self, w3: Web3, contract_address: str):
        """Initialize reader with blockchain connection.

        Args:
            w3: Web3 instance connected to the home chain
            contract_address: LiquidPledging contract address
        """
        self.w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.contract = self.w3.eth.contract(
            address=self.contract_address, abi=get_contract_abi("LiquidPledging")
        )

        logger.info("liquid_pledging.initialized", contract_address=self.contract_address)

    async def get_pledge(self, pledge_id: str) -> Pledge:
        """Fetch a pledge by id.

        Raises:
            BlockchainConnectionError: If the RPC call fails
        """
        result = await self._call(self.contract.functions.getPledge(int(pledge_id)).call)
        amount, owner, n_delegates, intended_project, commit_time, old_pledge, state = result

        return Pledge(
            pledge_id=str(pledge_id),
            amount=str(amount),
            owner=int(owner),
            n_delegates=int(n_delegates),
            intended_project=int(intended_project),
            commit_time=int(commit_time),
            old_pledge=str(old_pledge),
            pledge_state=PledgeState(int(state)),
        )

    async def get_pledge_delegate(self, pledge_id: str, index: int) -> PledgeDelegate:
        """Fetch the delegate at a (1-based) position in a pledge's delegation chain.

        Raises:
            BlockchainConnectionError: If the RPC call fails
        """
        id_delegate, address, name = await self._call(
            self.contract.functions.getPledgeDelegate(int(pledge_id), int(index)).call
        )
        return PledgeDelegate(id_delegate=int(id_delegate), address=address, name=name)

    async def get_block_timestamp(self, block_number: int) -> int:
        """Fetch a block's timestamp in epoch seconds.

        Raises:
            BlockchainConnectionError: If the RPC call fails
        """
        block = await self._call(self.w3.eth.get_block, block_number)
        return int(block["timestamp"])

    async def _call(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as e:
            logger.error(
                "liquid_pledging.call_failed",
                call=getattr(fn, "__name__", repr(fn)),
                args=args,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise BlockchainConnectionError(str(e)) from e
