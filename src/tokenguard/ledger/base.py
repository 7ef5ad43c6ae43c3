"""Base interfaces for the ledger client capability.

A ledger client is everything the core needs from an EVM node:
1. Read-only contract calls (symbol, decimals, balanceOf)
2. Gas estimation for the exact call that will be submitted
3. Current gas price
4. Native currency balance
5. Signing and broadcasting
6. Receipt lookup (confirmation tracking only)

Implementations own their connection state and must be safe to share between
concurrent operations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence


@dataclass(frozen=True)
class TransactionReceipt:
    """Mined transaction receipt.

    Attributes:
        tx_hash: Transaction hash (0x-prefixed hex)
        block_number: Block the transaction was mined in
        status: 1 for success, 0 for revert (out of gas included)
        gas_used: Gas actually consumed
    """
    tx_hash: str
    block_number: int
    status: int
    gas_used: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class LedgerError(Exception):
    """Exception raised when a ledger call fails (network, node or revert)."""
    pass


class LedgerRpcError(LedgerError):
    """JSON-RPC error object returned by the node."""

    def __init__(self, message: str, code: Optional[int] = None, method: str = ""):
        self.code = code
        self.method = method
        super().__init__(message)


class LedgerClient(ABC):
    """Abstract base class for ledger clients.

    Addresses are 0x-prefixed hex strings. Amounts, gas and prices are ints in
    base units (wei for the native currency).
    """

    @abstractmethod
    async def call_read_function(
        self, contract_address: str, function_name: str, args: Sequence[Any] = ()
    ) -> Any:
        """Call a read-only contract function.

        Args:
            contract_address: Contract to call
            function_name: ERC20 function name (symbol, decimals, balanceOf)
            args: Positional arguments

        Returns:
            Decoded return value
        """
        pass

    @abstractmethod
    async def estimate_fee(
        self,
        sender: str,
        contract_address: str,
        function_name: str,
        args: Sequence[Any],
        attached_value: int = 0,
    ) -> int:
        """Estimate gas units for a contract call sent from ``sender``."""
        pass

    @abstractmethod
    async def get_unit_price(self) -> int:
        """Get current gas price in wei."""
        pass

    @abstractmethod
    async def get_native_balance(self, address: str) -> int:
        """Get native currency balance in wei."""
        pass

    @abstractmethod
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
        """Sign a contract call with the sender's key and broadcast it.

        Returns:
            Transaction hash
        """
        pass

    @abstractmethod
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        """Get the receipt for a transaction, or None while it is pending."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
