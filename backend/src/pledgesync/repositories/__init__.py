"""Repository layer for the donation ledger.

Provides data access abstractions for all domain entities.
No base classes - each repository is self-contained.
"""

from pledgesync.repositories.donation import DonationNotFoundError, DonationRepository
from pledgesync.repositories.donation_history import DonationHistoryRepository
from pledgesync.repositories.milestone import MilestoneRepository
from pledgesync.repositories.pledge_admin import PledgeAdminRepository

__all__ = [
    "DonationRepository",
    "DonationNotFoundError",
    "DonationHistoryRepository",
    "PledgeAdminRepository",
    "MilestoneRepository",
]
