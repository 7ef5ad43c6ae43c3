"""Factory for creating ledger clients.

Dry-run mode returns the simulated client so no real transaction can be
broadcast.
"""

import logging
from typing import Optional

from tokenguard.config import Settings, get_settings
from tokenguard.ledger.base import LedgerClient

logger = logging.getLogger(__name__)


def get_ledger_client(settings: Optional[Settings] = None) -> LedgerClient:
    """Create a ledger client for the configured node.

    Args:
        settings: Settings to use (defaults to get_settings())

    Returns:
        LedgerClient instance; callers own it and should close it
    """
    settings = settings or get_settings()

    if settings.dry_run:
        from tokenguard.ledger.simulated import SimulatedLedgerClient

        logger.warning("DRY_RUN enabled - using simulated ledger")
        return SimulatedLedgerClient()

    from tokenguard.ledger.rpc import JsonRpcLedgerClient

    private_key = settings.private_key.get_secret_value() if settings.has_signing_key else None
    if private_key is None:
        logger.info("No private key configured - ledger client is read-only")

    return JsonRpcLedgerClient(
        rpc_url=settings.rpc_url,
        private_key=private_key,
        chain_id=settings.chain_id,
        timeout=settings.rpc_timeout,
    )
