"""Simulated ledger client for dry-run mode and testing.

Holds token balances, native balances and pending transactions in memory and
records every call so tests can assert on network usage.
"""

import asyncio
import logging
import secrets
from typing import Any, Optional, Sequence

from web3 import Web3

from tokenguard.ledger.base import LedgerClient, LedgerError, TransactionReceipt

logger = logging.getLogger(__name__)


class SimulatedLedgerClient(LedgerClient):
    """In-memory EVM node with a single ERC20 token per contract address."""

    def __init__(
        self,
        symbol: str = "SIM",
        decimals: int = 18,
        gas_estimate: int = 52_000,
        gas_price: int = 20 * 10**9,
        latency: float = 0.0,
        confirm_after: int = 1,
    ):
        """Initialize simulated node.

        Args:
            symbol: Value returned by symbol()
            decimals: Value returned by decimals()
            gas_estimate: Gas units returned by estimate_fee
            gas_price: Wei per gas returned by get_unit_price
            latency: Seconds each call sleeps (to exercise concurrency)
            confirm_after: Receipt lookups before a submitted tx is mined
        """
        self.symbol = symbol
        self.decimals = decimals
        self.gas_estimate = gas_estimate
        self.gas_price = gas_price
        self.latency = latency
        self.confirm_after = confirm_after

        self.token_balances: dict[str, int] = {}
        self.native_balances: dict[str, int] = {}
        self.submitted: dict[str, dict] = {}
        self.calls: list[tuple[str, tuple]] = []

        # Method name -> exception raised on next call(s)
        self.failures: dict[str, Exception] = {}
        self._receipt_polls: dict[str, int] = {}
        self._block_number = 1_000_000

    @staticmethod
    def _key(address: str) -> str:
        return address.lower()

    def set_token_balance(self, address: str, amount: int) -> None:
        self.token_balances[self._key(address)] = amount

    def set_native_balance(self, address: str, amount: int) -> None:
        self.native_balances[self._key(address)] = amount

    def fail(self, method: str, error: Optional[Exception] = None) -> None:
        """Make every subsequent call to ``method`` raise ``error``."""
        self.failures[method] = error or LedgerError(f"simulated {method} failure")

    def call_count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    async def _enter(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if self.latency:
            await asyncio.sleep(self.latency)
        if method in self.failures:
            raise self.failures[method]

    async def call_read_function(
        self, contract_address: str, function_name: str, args: Sequence[Any] = ()
    ) -> Any:
        await self._enter("call_read_function", contract_address, function_name, tuple(args))

        if function_name == "symbol":
            return self.symbol
        if function_name == "decimals":
            return self.decimals
        if function_name == "balanceOf":
            return self.token_balances.get(self._key(args[0]), 0)

        raise LedgerError(f"Unsupported ERC20 function: {function_name}")

    async def estimate_fee(
        self,
        sender: str,
        contract_address: str,
        function_name: str,
        args: Sequence[Any],
        attached_value: int = 0,
    ) -> int:
        await self._enter(
            "estimate_fee", sender, contract_address, function_name, tuple(args), attached_value
        )

        if function_name == "transfer":
            _, amount = args
            if self.token_balances.get(self._key(sender), 0) < amount:
                raise LedgerError("execution reverted: ERC20: transfer amount exceeds balance")

        return self.gas_estimate

    async def get_unit_price(self) -> int:
        await self._enter("get_unit_price")
        return self.gas_price

    async def get_native_balance(self, address: str) -> int:
        await self._enter("get_native_balance", address)
        return self.native_balances.get(self._key(address), 0)

    async def sign_and_submit(
        self,
        sender: str,
        contract_address: str,
        function_name: str,
        args: Sequence[Any],
        gas: int,
        gas_price: int,
        attached_value: int = 0,
    ) -> str:
        await self._enter(
            "sign_and_submit",
            sender,
            contract_address,
            function_name,
            tuple(args),
            gas,
            gas_price,
            attached_value,
        )

        tx_hash = Web3.to_hex(secrets.token_bytes(32))
        self.submitted[tx_hash] = {
            "sender": sender,
            "contract": contract_address,
            "function": function_name,
            "args": tuple(args),
            "gas": gas,
            "gas_price": gas_price,
            "value": attached_value,
        }

        if function_name == "transfer":
            recipient, amount = args
            self.token_balances[self._key(sender)] = (
                self.token_balances.get(self._key(sender), 0) - amount
            )
            self.token_balances[self._key(recipient)] = (
                self.token_balances.get(self._key(recipient), 0) + amount
            )

        fee = self.gas_estimate * gas_price
        self.native_balances[self._key(sender)] = max(
            self.native_balances.get(self._key(sender), 0) - fee, 0
        )

        logger.info(f"[SIMULATED] {function_name}{tuple(args)} from {sender}: {tx_hash}")
        return tx_hash

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        await self._enter("get_transaction_receipt", tx_hash)

        if tx_hash not in self.submitted:
            return None

        polls = self._receipt_polls.get(tx_hash, 0) + 1
        self._receipt_polls[tx_hash] = polls
        if polls <= self.confirm_after:
            return None

        return TransactionReceipt(
            tx_hash=tx_hash,
            block_number=self._block_number,
            status=1,
            gas_used=self.gas_estimate,
        )
