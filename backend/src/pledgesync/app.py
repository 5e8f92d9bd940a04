"""Application factory wiring the Transfer event pipeline."""

from typing import Optional

import structlog
from web3 import Web3

from pledgesync.core import timezone  # noqa: F401
from pledgesync.core.config import Settings, configure_logging
from pledgesync.core.database import setup_db_session
from pledgesync.services.blockchain.liquid_pledging import LiquidPledgingReader
from pledgesync.services.pledges.block_times import BlockTimestampCache
from pledgesync.services.pledges.event_queue import TransactionEventQueue
from pledgesync.services.pledges.handler import TransferEventHandler
from pledgesync.services.pledges.reconciler import DonationReconciler
from pledgesync.services.pledges.retry import RetryScheduler
from pledgesync.uow import create_uow_factory

logger = structlog.get_logger()


def create_transfer_handler(
    settings: Optional[Settings] = None,
    w3: Optional[Web3] = None,
    uow_factory=None,
) -> TransferEventHandler:
    """Build a TransferEventHandler from settings.

    Args:
        settings: Application settings (loaded from the environment when omitted)
        w3: Web3 instance (HTTP provider on ``HOME_NODE_URL`` when omitted)
        uow_factory: UnitOfWork factory (built from ``DATABASE_URL`` when omitted)

    Returns:
        Handler whose ``on_transfer_event`` accepts raw web3 Transfer events
    """
    settings = settings or Settings()  # type: ignore[call-arg]
    configure_logging(settings)

    if w3 is None:
        w3 = Web3(Web3.HTTPProvider(settings.home_node_url))

    if uow_factory is None:
        session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
        uow_factory = create_uow_factory(session_factory)

    reader = LiquidPledgingReader(w3, settings.liquid_pledging_address)
    block_times = BlockTimestampCache(
        reader.get_block_timestamp, capacity=settings.block_time_cache_size
    )
    reconciler = DonationReconciler(uow_factory, reader)

    handler = TransferEventHandler(
        reconciler,
        block_times,
        queue=TransactionEventQueue(),
        scheduler=RetryScheduler(settings.mint_retry_delay_seconds),
        max_retries=settings.mint_max_retries,
    )

    logger.info(
        "application.startup",
        contract=settings.liquid_pledging_address,
        db_url=settings.database_url.split("@")[-1],
        block_time_cache_size=settings.block_time_cache_size,
        mint_retry_delay_seconds=settings.mint_retry_delay_seconds,
        mint_max_retries=settings.mint_max_retries,
    )
    return handler
