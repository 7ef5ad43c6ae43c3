"""ERC20 function table and calldata codec.

Only the four functions the core needs are supported; this is not a general
ABI parser.
"""

from dataclasses import dataclass
from typing import Any, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from web3 import Web3

from tokenguard.ledger.base import LedgerError


@dataclass(frozen=True)
class ERC20Function:
    """Signature of one ERC20 function."""
    name: str
    inputs: tuple[str, ...]
    outputs: tuple[str, ...]
    constant: bool

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return bytes(Web3.keccak(text=self.signature)[:4])


ERC20_FUNCTIONS = {
    "transfer": ERC20Function("transfer", ("address", "uint256"), ("bool",), False),
    "balanceOf": ERC20Function("balanceOf", ("address",), ("uint256",), True),
    "decimals": ERC20Function("decimals", (), ("uint8",), True),
    "symbol": ERC20Function("symbol", (), ("string",), True),
}


def get_function(function_name: str) -> ERC20Function:
    """Look up an ERC20 function by name."""
    try:
        return ERC20_FUNCTIONS[function_name]
    except KeyError:
        raise LedgerError(f"Unsupported ERC20 function: {function_name}")


def encode_call(function_name: str, args: Sequence[Any] = ()) -> str:
    """Build 0x-prefixed calldata for an ERC20 call."""
    fn = get_function(function_name)
    if len(args) != len(fn.inputs):
        raise LedgerError(
            f"{fn.signature} takes {len(fn.inputs)} argument(s), got {len(args)}"
        )

    values = [
        Web3.to_checksum_address(arg) if abi_type == "address" else arg
        for abi_type, arg in zip(fn.inputs, args)
    ]

    try:
        payload = fn.selector + encode(list(fn.inputs), values)
    except (EncodingError, TypeError, ValueError) as e:
        raise LedgerError(f"Failed to encode {fn.signature}: {e}") from e

    return "0x" + payload.hex()


def decode_result(function_name: str, data: str) -> Any:
    """Decode the return data of an ERC20 call.

    Single-output functions return the bare value.
    """
    fn = get_function(function_name)
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)

    if not raw:
        raise LedgerError(f"Empty result for {fn.signature} (not a contract?)")

    try:
        values = decode(list(fn.outputs), raw)
    except (DecodingError, TypeError, ValueError) as e:
        raise LedgerError(f"Failed to decode {fn.signature} result: {e}") from e

    return values[0] if len(values) == 1 else values
