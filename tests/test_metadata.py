"""Tests for the single-flight token metadata cache."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from tests.constants import TOKEN
from tokenguard.errors import ErrorKind, MetadataUnavailableError
from tokenguard.ledger.base import LedgerError
from tokenguard.ledger.simulated import SimulatedLedgerClient
from tokenguard.metadata import TokenMetadata, TokenMetadataCache


class TestTokenMetadataCache:
    """Tests for TokenMetadataCache."""

    @pytest.mark.asyncio
    async def test_fetches_symbol_and_decimals(self, ledger, metadata_cache):
        metadata = await metadata_cache.get_metadata(ledger, TOKEN)

        assert metadata == TokenMetadata(symbol="TKN", decimals=18)
        functions = [args[1] for method, args in ledger.calls if method == "call_read_function"]
        assert functions == ["symbol", "decimals"]

    @pytest.mark.asyncio
    async def test_second_call_uses_cache(self, ledger, metadata_cache):
        first = await metadata_cache.get_metadata(ledger, TOKEN)
        second = await metadata_cache.get_metadata(ledger, TOKEN)

        assert first is second
        assert ledger.call_count("call_read_function") == 2
        assert metadata_cache.fetch_count == 1

    @pytest.mark.asyncio
    async def test_address_case_insensitive(self, ledger, metadata_cache):
        contract = "0x" + "ab" * 20
        await metadata_cache.get_metadata(ledger, contract)
        await metadata_cache.get_metadata(ledger, "0x" + "AB" * 20)

        assert metadata_cache.fetch_count == 1
        assert metadata_cache.peek("0x" + "aB" * 20) is not None

    @pytest.mark.asyncio
    async def test_concurrent_first_requests_single_flight(self, metadata_cache):
        """N concurrent callers trigger exactly one symbol/decimals pair."""
        ledger = SimulatedLedgerClient(symbol="TKN", decimals=6, latency=0.01)

        results = await asyncio.gather(
            *(metadata_cache.get_metadata(ledger, TOKEN) for _ in range(10))
        )

        assert all(r == TokenMetadata(symbol="TKN", decimals=6) for r in results)
        assert ledger.call_count("call_read_function") == 2
        assert metadata_cache.fetch_count == 1

    @pytest.mark.asyncio
    async def test_different_contracts_fetched_separately(self, ledger, metadata_cache):
        other = "0x" + "44" * 20
        await asyncio.gather(
            metadata_cache.get_metadata(ledger, TOKEN),
            metadata_cache.get_metadata(ledger, other),
        )

        assert metadata_cache.fetch_count == 2
        assert len(metadata_cache) == 2

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, ledger, metadata_cache):
        ledger.fail("call_read_function")

        with pytest.raises(MetadataUnavailableError) as exc_info:
            await metadata_cache.get_metadata(ledger, TOKEN)
        assert exc_info.value.kind == ErrorKind.METADATA_UNAVAILABLE
        assert metadata_cache.peek(TOKEN) is None

        ledger.failures.clear()
        metadata = await metadata_cache.get_metadata(ledger, TOKEN)
        assert metadata.symbol == "TKN"

    @pytest.mark.asyncio
    async def test_implausible_decimals_rejected(self, metadata_cache):
        ledger = SimulatedLedgerClient(decimals=77)

        with pytest.raises(MetadataUnavailableError, match="decimals"):
            await metadata_cache.get_metadata(ledger, TOKEN)

    @pytest.mark.asyncio
    async def test_decimals_upper_bound_accepted(self, metadata_cache):
        ledger = SimulatedLedgerClient(decimals=36)
        metadata = await metadata_cache.get_metadata(ledger, TOKEN)
        assert metadata.decimals == 36

    @pytest.mark.asyncio
    async def test_non_string_symbol_rejected(self, metadata_cache):
        client = AsyncMock()
        client.call_read_function.side_effect = [b"\x01\x02", 18]

        with pytest.raises(MetadataUnavailableError, match="symbol"):
            await metadata_cache.get_metadata(client, TOKEN)

    @pytest.mark.asyncio
    async def test_decimals_call_failure(self, metadata_cache):
        client = AsyncMock()
        client.call_read_function.side_effect = ["TKN", LedgerError("execution reverted")]

        with pytest.raises(MetadataUnavailableError, match="execution reverted"):
            await metadata_cache.get_metadata(client, TOKEN)

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_failure(self, metadata_cache):
        """Callers waiting on a failing fetch get its error, not a retry."""
        ledger = SimulatedLedgerClient(latency=0.01)
        ledger.fail("call_read_function", LedgerError("node unavailable"))

        results = await asyncio.gather(
            *(metadata_cache.get_metadata(ledger, TOKEN) for _ in range(5)),
            return_exceptions=True,
        )

        assert all(isinstance(r, MetadataUnavailableError) for r in results)
        assert metadata_cache.fetch_count == 1
        assert ledger.call_count("call_read_function") == 1

    @pytest.mark.asyncio
    async def test_later_caller_refetches_after_shared_failure(self, metadata_cache):
        client = AsyncMock()
        calls = []

        async def call_read_function(contract, name, args=()):
            calls.append(name)
            await asyncio.sleep(0.01)
            if len(calls) == 1:
                raise LedgerError("node unavailable")
            return "TKN" if name == "symbol" else 18

        client.call_read_function.side_effect = call_read_function

        results = await asyncio.gather(
            metadata_cache.get_metadata(client, TOKEN),
            metadata_cache.get_metadata(client, TOKEN),
            return_exceptions=True,
        )
        assert all(isinstance(r, MetadataUnavailableError) for r in results)
        assert calls == ["symbol"]

        metadata = await metadata_cache.get_metadata(client, TOKEN)
        assert metadata == TokenMetadata(symbol="TKN", decimals=18)
        assert metadata_cache.fetch_count == 2

    @pytest.mark.asyncio
    async def test_cancelling_one_waiter_keeps_fetch_for_others(self, metadata_cache):
        ledger = SimulatedLedgerClient(latency=0.02)

        first = asyncio.create_task(metadata_cache.get_metadata(ledger, TOKEN))
        second = asyncio.create_task(metadata_cache.get_metadata(ledger, TOKEN))
        await asyncio.sleep(0.005)
        first.cancel()

        metadata = await second
        with pytest.raises(asyncio.CancelledError):
            await first

        assert metadata.symbol == "SIM"
        assert metadata_cache.fetch_count == 1

    @pytest.mark.asyncio
    async def test_cancelled_fetch_leaves_cache_usable(self, metadata_cache):
        ledger = SimulatedLedgerClient(latency=0.05)

        task = asyncio.create_task(metadata_cache.get_metadata(ledger, TOKEN))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert metadata_cache.peek(TOKEN) is None

        ledger.latency = 0
        metadata = await metadata_cache.get_metadata(ledger, TOKEN)
        assert metadata.symbol == "SIM"

    @pytest.mark.asyncio
    async def test_invalidate_and_clear(self, ledger, metadata_cache):
        await metadata_cache.get_metadata(ledger, TOKEN)
        metadata_cache.invalidate(TOKEN)
        assert metadata_cache.peek(TOKEN) is None

        await metadata_cache.get_metadata(ledger, TOKEN)
        assert metadata_cache.fetch_count == 2

        metadata_cache.clear()
        assert len(metadata_cache) == 0

    def test_metadata_is_immutable(self):
        metadata = TokenMetadata(symbol="TKN", decimals=18)
        with pytest.raises(AttributeError):
            metadata.decimals = 6
