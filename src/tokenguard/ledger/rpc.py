"""EVM JSON-RPC ledger client.

Uses httpx for transport, eth_abi for ERC20 calldata and eth_account for
legacy (gasPrice) transaction signing. The private key stays inside the
eth_account ``LocalAccount``; it is never logged or included in errors.
"""

import asyncio
import itertools
import logging
from typing import Any, Optional, Sequence

import httpx
from eth_account import Account
from web3 import Web3

from tokenguard.config import Settings
from tokenguard.ledger.base import (
    LedgerClient,
    LedgerError,
    LedgerRpcError,
    TransactionReceipt,
)
from tokenguard.ledger.erc20 import decode_result, encode_call

logger = logging.getLogger(__name__)


def _to_int(value: Any, field: str) -> int:
    """Parse a hex quantity from a JSON-RPC result."""
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise LedgerError(f"Unexpected {field} value: {value!r}")
    try:
        return int(value, 16)
    except ValueError:
        raise LedgerError(f"Unexpected {field} value: {value!r}")


class JsonRpcLedgerClient(LedgerClient):
    """Ledger client talking JSON-RPC to a single EVM node.

    One httpx.AsyncClient is shared by all operations. Nonces are allocated
    under an asyncio.Lock so concurrent transfers from the same sender never
    reuse one.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            rpc_url: Node JSON-RPC endpoint
            private_key: Hex private key used by sign_and_submit (optional
                for read-only use)
            chain_id: Chain ID for signing; fetched with eth_chainId if None
            timeout: HTTP timeout per call in seconds
            transport: Custom httpx transport (tests)
        """
        self.rpc_url = rpc_url
        self._account = Account.from_key(private_key) if private_key else None
        self._chain_id = chain_id
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._request_ids = itertools.count(1)
        self._nonce_lock = asyncio.Lock()
        self._nonce_cache: dict[str, int] = {}

    @property
    def signer_address(self) -> Optional[str]:
        """Address controlled by the configured key."""
        return self._account.address if self._account else None

    async def _rpc(self, method: str, params: list) -> Any:
        """Send one JSON-RPC request and return its result."""
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._request_ids),
        }

        try:
            response = await self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            # httpx puts the full URL (and any API key in it) into str(e)
            raise LedgerError(f"{method} failed: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            detail = str(e).replace(self.rpc_url, Settings._redact_url(self.rpc_url))
            raise LedgerError(f"{method} failed: {detail or type(e).__name__}") from e
        except ValueError as e:
            raise LedgerError(f"{method} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise LedgerError(f"{method} returned unexpected payload")

        if data.get("error"):
            error = data["error"]
            if isinstance(error, dict):
                raise LedgerRpcError(
                    error.get("message", "unknown error"),
                    code=error.get("code"),
                    method=method,
                )
            raise LedgerRpcError(str(error), method=method)

        return data.get("result")

    async def call_read_function(
        self, contract_address: str, function_name: str, args: Sequence[Any] = ()
    ) -> Any:
        data = encode_call(function_name, args)
        result = await self._rpc(
            "eth_call",
            [{"to": Web3.to_checksum_address(contract_address), "data": data}, "latest"],
        )
        if not isinstance(result, str):
            raise LedgerError(f"eth_call returned unexpected result: {result!r}")
        return decode_result(function_name, result)

    async def estimate_fee(
        self,
        sender: str,
        contract_address: str,
        function_name: str,
        args: Sequence[Any],
        attached_value: int = 0,
    ) -> int:
        tx = {
            "from": Web3.to_checksum_address(sender),
            "to": Web3.to_checksum_address(contract_address),
            "data": encode_call(function_name, args),
            "value": hex(attached_value),
        }
        result = await self._rpc("eth_estimateGas", [tx])
        return _to_int(result, "gas estimate")

    async def get_unit_price(self) -> int:
        result = await self._rpc("eth_gasPrice", [])
        return _to_int(result, "gas price")

    async def get_native_balance(self, address: str) -> int:
        result = await self._rpc(
            "eth_getBalance", [Web3.to_checksum_address(address), "latest"]
        )
        return _to_int(result, "balance")

    async def get_chain_id(self) -> int:
        """Get chain ID (cached after first call)."""
        if self._chain_id is None:
            result = await self._rpc("eth_chainId", [])
            self._chain_id = _to_int(result, "chain id")
        return self._chain_id

    async def _get_next_nonce(self, address: str) -> int:
        """Allocate the next nonce for ``address``.

        Uses the higher of the node's pending count and the locally cached
        value so back-to-back submissions do not collide.
        """
        async with self._nonce_lock:
            result = await self._rpc("eth_getTransactionCount", [address, "pending"])
            chain_nonce = _to_int(result, "nonce")
            next_nonce = max(chain_nonce, self._nonce_cache.get(address, 0))
            self._nonce_cache[address] = next_nonce + 1
            return next_nonce

    def _reset_nonce_cache(self, address: str) -> None:
        self._nonce_cache.pop(address, None)

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
        if self._account is None:
            raise LedgerError("No signing key configured")

        sender = Web3.to_checksum_address(sender)
        if sender != self._account.address:
            raise LedgerError(f"Signing key does not control sender {sender}")

        tx = {
            "to": Web3.to_checksum_address(contract_address),
            "data": encode_call(function_name, args),
            "value": attached_value,
            "gas": gas,
            "gasPrice": gas_price,
            "chainId": await self.get_chain_id(),
            "nonce": await self._get_next_nonce(sender),
        }

        try:
            signed_tx = self._account.sign_transaction(tx)
            raw_tx = signed_tx.raw_transaction
            result = await self._rpc("eth_sendRawTransaction", [Web3.to_hex(raw_tx)])
        except LedgerError:
            self._reset_nonce_cache(sender)
            raise
        except (TypeError, ValueError) as e:
            self._reset_nonce_cache(sender)
            raise LedgerError(f"Failed to sign transaction: {e}") from e

        if not isinstance(result, str):
            raise LedgerError(f"eth_sendRawTransaction returned unexpected result: {result!r}")

        logger.info(f"Broadcast {function_name} from {sender} nonce={tx['nonce']}: {result}")
        return result

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        result = await self._rpc("eth_getTransactionReceipt", [tx_hash])
        if result is None:
            return None

        gas_used = result.get("gasUsed")
        return TransactionReceipt(
            tx_hash=result.get("transactionHash", tx_hash),
            block_number=_to_int(result.get("blockNumber"), "block number"),
            status=_to_int(result.get("status", "0x0"), "status"),
            gas_used=_to_int(gas_used, "gas used") if gas_used is not None else None,
        )

    async def close(self) -> None:
        await self._client.aclose()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(rpc_url={Settings._redact_url(self.rpc_url)!r})"
