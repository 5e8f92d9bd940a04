"""Donation entity - off-chain ledger record derived from LiquidPledging Transfer events."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import field_validator
from sqlmodel import Field, SQLModel


class DonationStatus(str, Enum):
    """Donation lifecycle status."""

    WAITING = "waiting"
    TO_APPROVE = "to_approve"
    COMMITTED = "committed"
    PAYING = "paying"
    PAID = "paid"


class Donation(SQLModel, table=True):
    """Donation tracks the current off-chain state of (part of) a pledge."""

    __tablename__ = "donations"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    giver_address: Optional[str] = Field(default=None, max_length=42)
    amount: str = Field(max_length=78)  # uint256 as decimal string
    pledge_id: str = Field(max_length=78, index=True)
    owner: int
    owner_id: str = Field(max_length=255)
    owner_type: str = Field(max_length=20)
    status: DonationStatus = Field(default=DonationStatus.WAITING, index=True)
    payment_status: str = Field(default="Pledged", max_length=20)

    # Present only while the pledge has an intended project
    intended_project: Optional[int] = Field(default=None)
    intended_project_id: Optional[str] = Field(default=None, max_length=255)
    intended_project_type: Optional[str] = Field(default=None, max_length=20)

    # Last delegate in the pledge's delegation chain
    delegate: Optional[int] = Field(default=None)
    delegate_id: Optional[str] = Field(default=None, max_length=255)
    delegate_type: Optional[str] = Field(default=None, max_length=20)

    commit_time: Optional[datetime] = Field(default=None)
    tx_hash: Optional[str] = Field(default=None, max_length=66, index=True)

    confirmations: int = Field(default=0, ge=0)
    required_confirmations: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: str) -> str:
        """Validate amount is a non-negative integer string (wei)."""
        if not v.isdigit():
            raise ValueError("Amount must be a non-negative integer string")
        return v
