"""Transfer event and the context gathered to reconcile it."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from eth_utils import to_hex
from pydantic import BaseModel, Field

from pledgesync.models.donation import Donation
from pledgesync.models.pledge_admin import PledgeAdmin
from pledgesync.services.blockchain.liquid_pledging import Pledge

MINT_PLEDGE_ID = "0"


class TransferEvent(BaseModel):
    """A decoded LiquidPledging ``Transfer(from, to, amount)`` log."""

    from_pledge_id: str
    to_pledge_id: str
    amount: str = Field(pattern=r"^\d+$")
    tx_hash: str
    block_number: int = Field(ge=0)

    @classmethod
    def from_raw(cls, raw_event: Mapping[str, Any]) -> "TransferEvent":
        """Build from a web3 event dict.

        Raises:
            TypeError: If the event is not a Transfer event
            ValueError: If required fields are missing or malformed
        """
        if raw_event.get("event") != "Transfer":
            raise TypeError("transfer only handles Transfer events")

        try:
            values = raw_event["returnValues"]
            tx_hash = raw_event["transactionHash"]
            return cls(
                from_pledge_id=str(values["from"]),
                to_pledge_id=str(values["to"]),
                amount=str(values["amount"]),
                tx_hash=to_hex(tx_hash) if isinstance(tx_hash, bytes) else str(tx_hash),
                block_number=int(raw_event["blockNumber"]),
            )
        except KeyError as e:
            raise ValueError(f"Malformed Transfer event, missing {e}") from e

    @property
    def is_mint(self) -> bool:
        return self.from_pledge_id == MINT_PLEDGE_ID


@dataclass(frozen=True)
class TransferContext:
    """Everything known about a pledge-to-pledge transfer.

    ``to_donation`` is only set once a split has created a new donation.
    """

    from_pledge: Pledge
    to_pledge: Pledge
    from_admin: PledgeAdmin
    to_admin: PledgeAdmin
    donation: Donation
    amount: str
    timestamp: datetime
    tx_hash: str
    delegate: Optional[PledgeAdmin] = None
    intended_project: Optional[PledgeAdmin] = None
    to_donation: Optional[Donation] = None

    @property
    def to_pledge_id(self) -> str:
        return self.to_pledge.pledge_id

    @property
    def is_full_transfer(self) -> bool:
        return self.donation.amount == self.amount

    def log_context(self) -> dict[str, Any]:
        """Fields identifying the transfer in log entries."""
        return {
            "from_pledge_id": self.from_pledge.pledge_id,
            "to_pledge_id": self.to_pledge_id,
            "amount": self.amount,
            "timestamp": self.timestamp.isoformat(),
            "tx_hash": self.tx_hash,
            "donation_id": str(self.donation.id),
        }
