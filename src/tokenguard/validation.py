"""Address validation for EVM accounts."""

import re

from web3 import Web3

from tokenguard.errors import InvalidAddressError

EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def validate_address(address: str) -> tuple[bool, str]:
    """Validate EVM address syntax.

    All-lowercase and all-uppercase hex are accepted as-is. Mixed-case
    addresses must carry a correct EIP-55 checksum, since a typo in a
    checksummed address is otherwise undetectable.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not address or not isinstance(address, str):
        return False, "Address is required"

    address = address.strip()

    if not EVM_ADDRESS_RE.match(address):
        return False, "Invalid EVM address format"

    body = address[2:]
    if body != body.lower() and body != body.upper():
        if not Web3.is_checksum_address(address):
            return False, "Invalid EIP-55 checksum"

    return True, ""


def require_address(address: str, field: str = "address") -> str:
    """Return the checksummed form of ``address`` or raise InvalidAddressError."""
    valid, error = validate_address(address)
    if not valid:
        raise InvalidAddressError(f"{field}: {error}")
    return Web3.to_checksum_address(address.strip())
