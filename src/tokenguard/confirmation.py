"""Opt-in confirmation tracking for submitted transactions.

Transfers return as soon as the transaction is broadcast. Callers that want
to know whether it was mined poll here: one immediate receipt check, then up
to ``max_attempts`` further checks ``interval`` seconds apart. The loop is
bounded and visible; cancelling the awaiting task stops local waiting only,
never the on-chain transaction.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from tokenguard.ledger.base import LedgerClient, LedgerError, TransactionReceipt

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 12
DEFAULT_INTERVAL = 5.0


@dataclass(frozen=True)
class Confirmed:
    """Transaction was mined (successfully or not; see receipt.succeeded)."""
    receipt: TransactionReceipt
    attempts: int

    @property
    def succeeded(self) -> bool:
        return self.receipt.succeeded


@dataclass(frozen=True)
class TimedOut:
    """No receipt after all attempts. The transaction may still be pending."""
    tx_hash: str
    attempts: int

    succeeded = False


ConfirmationResult = Union[Confirmed, TimedOut]


async def await_confirmation(
    ledger_client: LedgerClient,
    tx_hash: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    interval: float = DEFAULT_INTERVAL,
    on_attempt: Optional[Callable[[int], None]] = None,
) -> ConfirmationResult:
    """Poll for a transaction receipt.

    Args:
        ledger_client: Client for receipt lookups
        tx_hash: Transaction to watch
        max_attempts: Polls after the initial check
        interval: Seconds to sleep before each poll
        on_attempt: Called with the attempt number (1-based) before each poll

    Returns:
        Confirmed with the receipt, or TimedOut
    """
    if max_attempts < 0:
        raise ValueError("max_attempts must not be negative")

    attempts = 0
    while True:
        try:
            receipt = await ledger_client.get_transaction_receipt(tx_hash)
        except LedgerError as e:
            logger.warning(f"Receipt lookup for {tx_hash} failed: {e}")
            receipt = None

        if receipt is not None:
            if receipt.succeeded:
                logger.info(f"Transaction {tx_hash} mined in block {receipt.block_number}")
            else:
                logger.warning(
                    f"Transaction {tx_hash} failed (out of gas or reverted) "
                    f"in block {receipt.block_number}"
                )
            return Confirmed(receipt=receipt, attempts=attempts)

        if attempts >= max_attempts:
            break

        await asyncio.sleep(interval)
        attempts += 1
        logger.debug(f"Checking transaction {tx_hash}... attempt {attempts}")
        if on_attempt is not None:
            on_attempt(attempts)

    logger.info(f"Transaction {tx_hash} not found after {attempts} attempts; it may still be pending")
    return TimedOut(tx_hash=tx_hash, attempts=attempts)
