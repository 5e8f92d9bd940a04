"""Milestone entity - only the payment fields touched by transfer processing."""

from datetime import datetime

from sqlmodel import Field, SQLModel


class Milestone(SQLModel, table=True):
    """Milestone receives payment status updates when its pledges are paid out."""

    __tablename__ = "milestones"  # type: ignore[assignment]

    id: str = Field(primary_key=True, max_length=255)
    status: str = Field(default="InProgress", max_length=50)
    mined: bool = Field(default=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
