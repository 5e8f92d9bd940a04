"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from pledgesync.models.donation import Donation, DonationStatus
from pledgesync.models.donation_history import DonationHistory, HistoryKind
from pledgesync.models.milestone import Milestone
from pledgesync.models.pledge_admin import AdminType, PledgeAdmin

__all__ = [
    "Donation",
    "DonationStatus",
    "DonationHistory",
    "HistoryKind",
    "PledgeAdmin",
    "AdminType",
    "Milestone",
]
