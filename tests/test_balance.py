"""Tests for read-only balance queries."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from tests.constants import RECIPIENT, SENDER, TOKEN
from tokenguard.amounts import to_base_units
from tokenguard.balance import get_formatted_balance, get_native_balance
from tokenguard.errors import ErrorKind, InvalidAddressError, QueryFailedError
from tokenguard.metadata import TokenMetadata

METADATA = TokenMetadata(symbol="TKN", decimals=18)


class TestFormattedBalance:
    """Tests for get_formatted_balance."""

    @pytest.mark.asyncio
    async def test_exact_balance(self, ledger):
        ledger.set_token_balance(RECIPIENT, 2500000000000000000)

        balance = await get_formatted_balance(ledger, TOKEN, RECIPIENT, METADATA)

        assert balance == Decimal("2.5")
        assert ledger.calls == [("call_read_function", (TOKEN, "balanceOf", (RECIPIENT,)))]

    @pytest.mark.asyncio
    async def test_unknown_holder_is_zero(self, ledger):
        balance = await get_formatted_balance(ledger, TOKEN, "0x" + "99" * 20, METADATA)
        assert balance == 0

    @pytest.mark.asyncio
    async def test_places_rounds_half_up(self, ledger):
        ledger.set_token_balance(RECIPIENT, 1_234_567)

        balance = await get_formatted_balance(
            ledger, TOKEN, RECIPIENT, TokenMetadata(symbol="USDX", decimals=6), places=2
        )
        assert balance == Decimal("1.23")

        ledger.set_token_balance(RECIPIENT, 1_235_000)
        balance = await get_formatted_balance(
            ledger, TOKEN, RECIPIENT, TokenMetadata(symbol="USDX", decimals=6), places=2
        )
        assert str(balance) == "1.24"

    @pytest.mark.asyncio
    async def test_uint256_max_is_exact(self, ledger):
        ledger.set_token_balance(RECIPIENT, 2**256 - 1)

        balance = await get_formatted_balance(ledger, TOKEN, RECIPIENT, METADATA)

        assert to_base_units(balance, 18) == 2**256 - 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("address", ["", "0x123", "hello", "0x" + "g" * 40])
    async def test_invalid_address_makes_no_call(self, ledger, address):
        with pytest.raises(InvalidAddressError) as exc_info:
            await get_formatted_balance(ledger, TOKEN, address, METADATA)

        assert exc_info.value.kind == ErrorKind.INVALID_ADDRESS
        assert ledger.calls == []

    @pytest.mark.asyncio
    async def test_bad_checksum_rejected(self, ledger):
        # Valid checksum is 0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed
        with pytest.raises(InvalidAddressError, match="checksum"):
            await get_formatted_balance(
                ledger, TOKEN, "0x5AAeb6053F3E94C9b9A09f33669435E7Ef1BeAed", METADATA
            )

    @pytest.mark.asyncio
    async def test_node_failure(self, ledger):
        ledger.fail("call_read_function")

        with pytest.raises(QueryFailedError) as exc_info:
            await get_formatted_balance(ledger, TOKEN, SENDER, METADATA)

        assert exc_info.value.kind == ErrorKind.QUERY_FAILED

    @pytest.mark.asyncio
    async def test_garbage_result(self):
        client = AsyncMock()
        client.call_read_function.return_value = "lots"

        with pytest.raises(QueryFailedError, match="Unexpected"):
            await get_formatted_balance(client, TOKEN, SENDER, METADATA)


class TestNativeBalance:
    """Tests for get_native_balance."""

    @pytest.mark.asyncio
    async def test_native_balance_in_ether(self, ledger):
        balance = await get_native_balance(ledger, SENDER)
        assert balance == Decimal("1")

    @pytest.mark.asyncio
    async def test_native_balance_failure(self, ledger):
        ledger.fail("get_native_balance")

        with pytest.raises(QueryFailedError):
            await get_native_balance(ledger, SENDER)
