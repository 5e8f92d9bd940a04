"""PledgeAdmin entity - off-chain view of a LiquidPledging admin (giver, DAC, campaign, milestone)."""

from enum import Enum
from typing import Optional

from eth_utils.address import to_checksum_address
from pydantic import field_validator
from sqlmodel import Field, SQLModel


class AdminType(str, Enum):
    """Domain collection a pledge admin belongs to."""

    GIVER = "giver"
    DAC = "dac"
    CAMPAIGN = "campaign"
    MILESTONE = "milestone"


class PledgeAdmin(SQLModel, table=True):
    """PledgeAdmin maps an on-chain admin id to its domain entity."""

    __tablename__ = "pledge_admins"  # type: ignore[assignment]

    id: int = Field(primary_key=True)  # on-chain admin id
    type: AdminType
    type_id: str = Field(max_length=255)  # id in the giver/dac/campaign/milestone collection
    address: Optional[str] = Field(default=None, max_length=42)
    title: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: Optional[str]) -> Optional[str]:
        """Normalize the admin's Ethereum address to checksummed format (EIP-55)."""
        if v is None:
            return None
        if not v.startswith("0x") or len(v) != 42:
            raise ValueError("Address must be in format 0x followed by 40 hex characters")
        try:
            return to_checksum_address(v)
        except ValueError:
            raise ValueError("Address must contain valid hexadecimal characters")
