"""Request, outcome and progress types for balance queries and transfers."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from tokenguard.errors import ErrorKind
from tokenguard.fees import FeeQuote


class TransferState(str, Enum):
    """States of one transfer orchestration run."""
    IDLE = "idle"
    VALIDATING = "validating"
    SCALING = "scaling"
    CHECKING_BALANCE = "checking_balance"
    ESTIMATING = "estimating"
    CHECKING_AFFORDABILITY = "checking_affordability"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    REJECTED = "rejected"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TransferState.SUBMITTED, TransferState.REJECTED, TransferState.FAILED)


@dataclass(frozen=True)
class TransferRequest:
    """A user's request to send ``human_amount`` tokens to ``recipient``."""
    recipient: str
    human_amount: str
    sender_address: str


@dataclass(frozen=True)
class ProgressEvent:
    """Status notification emitted on every state transition."""
    state: TransferState
    message: str
    detail: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Submitted:
    """Transaction was broadcast. Mining is not awaited."""
    tx_hash: str
    amount: int
    quote: FeeQuote

    status = TransferState.SUBMITTED
    success = True


@dataclass(frozen=True)
class Rejected:
    """Transfer was refused before broadcast (expected, not exceptional)."""
    reason: ErrorKind
    message: str = ""
    shortfall: Optional[int] = None

    status = TransferState.REJECTED
    success = False


@dataclass(frozen=True)
class Failed:
    """A network or node error ended the transfer attempt."""
    error_kind: ErrorKind
    detail: str = ""

    status = TransferState.FAILED
    success = False


TransferOutcome = Union[Submitted, Rejected, Failed]


@dataclass(frozen=True)
class BalanceResult:
    """Result of a balance check, returned instead of raised."""
    address: str
    balance: Optional[Decimal] = None
    symbol: str = ""
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error_kind is None
