"""Read-only balance queries."""

import logging
from decimal import Decimal
from typing import Optional

from tokenguard.amounts import to_human_units
from tokenguard.errors import InvalidAddressError, QueryFailedError
from tokenguard.ledger.base import LedgerClient, LedgerError
from tokenguard.metadata import TokenMetadata
from tokenguard.validation import validate_address

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18


def _check_address(address: str) -> str:
    valid, error = validate_address(address)
    if not valid:
        raise InvalidAddressError(error)
    return address.strip()


async def get_formatted_balance(
    ledger_client: LedgerClient,
    contract_address: str,
    address: str,
    metadata: TokenMetadata,
    places: Optional[int] = None,
) -> Decimal:
    """Get an address's token balance in human units.

    Args:
        ledger_client: Client for the balanceOf call
        contract_address: Token contract
        address: Holder to query
        metadata: Token metadata (for decimals)
        places: Round half-up to this many places for display (exact if None)

    Raises:
        InvalidAddressError: If address is not a valid EVM address
        QueryFailedError: If the node call fails or returns garbage
    """
    address = _check_address(address)

    try:
        raw_balance = await ledger_client.call_read_function(
            contract_address, "balanceOf", [address]
        )
    except LedgerError as e:
        logger.error(f"Balance check error for {address}: {e}")
        raise QueryFailedError(f"Balance query failed: {e}") from e

    if isinstance(raw_balance, bool) or not isinstance(raw_balance, int) or raw_balance < 0:
        raise QueryFailedError(f"Unexpected balanceOf result: {raw_balance!r}")

    return to_human_units(raw_balance, metadata.decimals, places)


async def get_native_balance(
    ledger_client: LedgerClient,
    address: str,
    places: Optional[int] = None,
) -> Decimal:
    """Get an address's native currency balance in whole units (e.g. ETH)."""
    address = _check_address(address)

    try:
        balance_wei = await ledger_client.get_native_balance(address)
    except LedgerError as e:
        logger.error(f"Native balance check error for {address}: {e}")
        raise QueryFailedError(f"Native balance query failed: {e}") from e

    return to_human_units(balance_wei, NATIVE_DECIMALS, places)
