"""Ledger client capability: the core's only view of the node."""

from tokenguard.ledger.base import (
    LedgerClient,
    LedgerError,
    LedgerRpcError,
    TransactionReceipt,
)
from tokenguard.ledger.factory import get_ledger_client

__all__ = [
    "LedgerClient",
    "LedgerError",
    "LedgerRpcError",
    "TransactionReceipt",
    "get_ledger_client",
]
