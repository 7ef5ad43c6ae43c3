"""Error taxonomy for balance queries and transfers.

Every failure the core can report maps to one ``ErrorKind`` so callers can
show an actionable message instead of a generic "transfer failed".
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Distinguishable reasons a query or transfer did not succeed."""
    INVALID_INPUT = "invalid_input"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_ADDRESS = "invalid_address"
    METADATA_UNAVAILABLE = "metadata_unavailable"
    NO_GAS_FUNDS = "no_gas_funds"
    ESTIMATION_FAILED = "estimation_failed"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    SUBMISSION_FAILED = "submission_failed"
    QUERY_FAILED = "query_failed"


class TokenGuardError(Exception):
    """Base exception carrying an ``ErrorKind``."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str = "", kind: Optional[ErrorKind] = None):
        if kind is not None:
            self.kind = kind
        self.message = message or self.kind.value.replace("_", " ")
        super().__init__(self.message)


class InvalidInputError(TokenGuardError):
    """Raised when caller input is missing or malformed."""
    kind = ErrorKind.INVALID_INPUT


class InvalidAmountError(TokenGuardError):
    """Raised when an amount is not a non-negative finite decimal."""
    kind = ErrorKind.INVALID_AMOUNT


class InvalidAddressError(TokenGuardError):
    """Raised when an address is not a syntactically valid EVM address."""
    kind = ErrorKind.INVALID_ADDRESS


class MetadataUnavailableError(TokenGuardError):
    """Raised when token symbol/decimals cannot be fetched or are implausible."""
    kind = ErrorKind.METADATA_UNAVAILABLE


class EstimationFailedError(TokenGuardError):
    """Raised when the node cannot estimate gas or report a gas price."""
    kind = ErrorKind.ESTIMATION_FAILED


class SubmissionFailedError(TokenGuardError):
    """Raised when signing or broadcasting a transaction fails."""
    kind = ErrorKind.SUBMISSION_FAILED


class QueryFailedError(TokenGuardError):
    """Raised when a read-only balance query fails."""
    kind = ErrorKind.QUERY_FAILED
