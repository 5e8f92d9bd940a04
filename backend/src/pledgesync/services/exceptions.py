"""Service error hierarchy for Transfer event processing.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- TransientError: Retryable errors (record not created yet, RPC failures)
- PermanentError: Non-retryable errors (unmodelled on-chain scenarios)
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class TransientError(ServiceError):
    """Transient error that may succeed on retry."""

    pass


class PermanentError(ServiceError):
    """Permanent error that will not succeed on retry."""

    pass


class InvalidStateTransition(Exception):
    """Raised when a pending mint is moved to a state it cannot reach."""

    pass


# Reconciliation errors
class DonationNotYetCreatedError(TransientError):
    """No donation exists yet for a minted pledge's transaction.

    Usually the ledger record is still being written through the REST API
    when the event arrives (fast local mining, resync of past events).
    """

    def __init__(self, tx_hash: str, pledge_id: str):
        self.tx_hash = tx_hash
        self.pledge_id = pledge_id
        super().__init__(f"No donation found for tx {tx_hash} (pledge {pledge_id})")


class UnresolvableDonationError(PermanentError):
    """No donation can be matched to a transfer's source pledge."""

    def __init__(self, from_pledge_id: str, to_pledge_id: str, amount: str, tx_hash: str):
        self.from_pledge_id = from_pledge_id
        self.to_pledge_id = to_pledge_id
        self.amount = amount
        self.tx_hash = tx_hash
        super().__init__(
            f"Unable to determine which donation to update: from={from_pledge_id} "
            f"to={to_pledge_id} amount={amount} tx_hash={tx_hash}"
        )


class PledgeAdminNotFoundError(PermanentError):
    """A pledge owner admin is not known to the ledger."""

    def __init__(self, admin_id: int):
        self.admin_id = admin_id
        super().__init__(f"Pledge admin {admin_id} not found")


# Blockchain errors
class BlockchainConnectionError(TransientError):
    """Failed to read state from the blockchain RPC endpoint."""

    pass
