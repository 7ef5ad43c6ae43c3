"""Token metadata cache.

``symbol`` and ``decimals`` never change for a deployed ERC20 contract, so
they are fetched once per contract address and kept for the lifetime of the
cache. Fetches are single-flight: concurrent first-time callers share one
in-flight task, so N callers trigger exactly one pair of read calls and all
of them see the same result or the same error. A failed fetch is not cached;
the next caller after it starts a fresh one.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from tokenguard.errors import MetadataUnavailableError
from tokenguard.ledger.base import LedgerClient, LedgerError

logger = logging.getLogger(__name__)

# Plausible upper bound for a token's decimals (uint8 allows up to 255)
MAX_TOKEN_DECIMALS = 36


@dataclass(frozen=True)
class TokenMetadata:
    """Immutable token metadata."""
    symbol: str
    decimals: int


@dataclass
class _Flight:
    """An in-flight metadata fetch and the number of callers awaiting it."""
    task: asyncio.Task
    waiters: int = 0


class TokenMetadataCache:
    """Single-flight cache of TokenMetadata keyed by contract address.

    Example:
        cache = TokenMetadataCache()
        metadata = await cache.get_metadata(client, "0x...")
    """

    def __init__(self):
        self._entries: dict[str, TokenMetadata] = {}
        self._inflight: dict[str, _Flight] = {}
        self.fetch_count = 0

    @staticmethod
    def _key(contract_address: str) -> str:
        return contract_address.strip().lower()

    def peek(self, contract_address: str) -> Optional[TokenMetadata]:
        """Return cached metadata without fetching."""
        return self._entries.get(self._key(contract_address))

    async def get_metadata(
        self, ledger_client: LedgerClient, contract_address: str
    ) -> TokenMetadata:
        """Get token metadata, fetching it on first use.

        Args:
            ledger_client: Client used for the symbol/decimals calls
            contract_address: Token contract

        Returns:
            TokenMetadata

        Raises:
            MetadataUnavailableError: If either call fails or returns an
                implausible value. Failures are not cached.
        """
        key = self._key(contract_address)

        cached = self._entries.get(key)
        if cached is not None:
            return cached

        flight = self._inflight.get(key)
        if flight is None or flight.task.done():
            flight = self._start_fetch(key, ledger_client, contract_address)

        flight.waiters += 1
        try:
            # Shielded so one caller's cancellation does not fail the others
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            if flight.waiters == 1 and not flight.task.done():
                flight.task.cancel()
            raise
        finally:
            flight.waiters -= 1

    def _start_fetch(
        self, key: str, ledger_client: LedgerClient, contract_address: str
    ) -> _Flight:
        flight = _Flight(task=asyncio.create_task(self._fetch(ledger_client, contract_address)))
        self._inflight[key] = flight

        def _done(task: asyncio.Task) -> None:
            if self._inflight.get(key) is flight:
                del self._inflight[key]
            if not task.cancelled() and task.exception() is None:
                self._entries[key] = task.result()

        flight.task.add_done_callback(_done)
        return flight

    async def _fetch(self, ledger_client: LedgerClient, contract_address: str) -> TokenMetadata:
        self.fetch_count += 1
        logger.debug(f"Fetching token metadata for {contract_address}")

        try:
            symbol = await ledger_client.call_read_function(contract_address, "symbol")
            decimals = await ledger_client.call_read_function(contract_address, "decimals")
        except LedgerError as e:
            logger.error(f"Token metadata fetch failed for {contract_address}: {e}")
            raise MetadataUnavailableError(f"Could not read token metadata: {e}") from e

        if not isinstance(symbol, str):
            raise MetadataUnavailableError(f"Token symbol is not a string: {symbol!r}")

        if (
            isinstance(decimals, bool)
            or not isinstance(decimals, int)
            or not 0 <= decimals <= MAX_TOKEN_DECIMALS
        ):
            raise MetadataUnavailableError(
                f"Implausible token decimals: {decimals!r} (expected 0-{MAX_TOKEN_DECIMALS})"
            )

        metadata = TokenMetadata(symbol=symbol, decimals=decimals)
        logger.info(f"Connected to {symbol} contract {contract_address} ({decimals} decimals)")
        return metadata

    def invalidate(self, contract_address: str) -> None:
        """Drop cached metadata, e.g. when the contract binding is replaced."""
        self._entries.pop(self._key(contract_address), None)

    def clear(self) -> None:
        """Clear all cached metadata (useful for testing)."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
