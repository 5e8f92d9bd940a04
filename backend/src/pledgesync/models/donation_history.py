"""DonationHistory entity - append-only audit trail of donation transitions."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class HistoryKind(str, Enum):
    """Why a history entry was recorded."""

    NEW_DONATION = "new_donation"
    COMMITTED_DELEGATION = "committed_delegation"
    CAMPAIGN_TO_MILESTONE = "campaign_to_milestone"
    REGULAR_TRANSFER = "regular_transfer"


class DonationHistory(SQLModel, table=True):
    """DonationHistory records one meaningful state transition of a donation.

    Rows are never updated after insertion.
    """

    __tablename__ = "donation_history"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    donation_id: UUID = Field(foreign_key="donations.id", index=True)
    from_donation_id: Optional[UUID] = Field(default=None, foreign_key="donations.id")
    kind: HistoryKind = Field(index=True)
    owner_id: str = Field(max_length=255)
    owner_type: str = Field(max_length=20)
    from_owner_id: Optional[str] = Field(default=None, max_length=255)
    from_owner_type: Optional[str] = Field(default=None, max_length=20)
    delegate_id: Optional[str] = Field(default=None, max_length=255)
    delegate_type: Optional[str] = Field(default=None, max_length=20)
    amount: str = Field(max_length=78)
    tx_hash: Optional[str] = Field(default=None, max_length=66)
    giver_address: Optional[str] = Field(default=None, max_length=42)
    created_at: datetime = Field(default_factory=datetime.utcnow)
