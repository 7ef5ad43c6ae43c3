"""Gas fee estimation and affordability checks.

Fee flow:
1. Estimate gas for the exact transfer call that will be submitted
2. Add a safety buffer (default 30%) with integer-only arithmetic
3. Fetch the current gas price
4. Compare the sender's native balance against buffered gas * price

The gas price is fetched after the estimate and can move before submission.
That race is inherent to an external fee market and is not guarded against.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import Optional, Union

from tokenguard.errors import EstimationFailedError
from tokenguard.ledger.base import LedgerClient, LedgerError

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_RATIO = Decimal("0.30")

# Upper bound on the buffer ratio (1000% on top of the estimate)
MAX_BUFFER_RATIO = Decimal("10")

RatioInput = Union[Decimal, str, int]


@dataclass(frozen=True)
class FeeQuote:
    """Gas quote for one transfer attempt.

    Attributes:
        base_estimate: Gas units reported by the node
        buffered_estimate: Gas limit actually used (base + buffer)
        unit_price: Gas price in wei
        total_cost: Maximum fee in wei (buffered_estimate * unit_price)
    """
    base_estimate: int
    buffered_estimate: int
    unit_price: int
    total_cost: int

    @classmethod
    def build(cls, base_estimate: int, unit_price: int, buffer_ratio: RatioInput) -> "FeeQuote":
        buffered = apply_buffer(base_estimate, buffer_ratio)
        return cls(
            base_estimate=base_estimate,
            buffered_estimate=buffered,
            unit_price=unit_price,
            total_cost=buffered * unit_price,
        )


def _ratio_fraction(buffer_ratio: RatioInput) -> Fraction:
    """Convert a buffer ratio to an exact fraction."""
    if isinstance(buffer_ratio, (bool, float)):
        raise ValueError("buffer ratio must be a Decimal, str or int")

    try:
        ratio = Decimal(buffer_ratio)
    except InvalidOperation:
        raise ValueError(f"Invalid buffer ratio: {buffer_ratio!r}")

    if not ratio.is_finite() or ratio < 0 or ratio > MAX_BUFFER_RATIO:
        raise ValueError(f"buffer ratio must be between 0 and {MAX_BUFFER_RATIO}, got {buffer_ratio}")

    return Fraction(*ratio.as_integer_ratio())


def apply_buffer(base_estimate: int, buffer_ratio: RatioInput = DEFAULT_BUFFER_RATIO) -> int:
    """Return ``base_estimate + floor(base_estimate * buffer_ratio)``.

    Computed on integers only, so 30% of 52000 is exactly 15600.
    """
    if isinstance(base_estimate, bool) or not isinstance(base_estimate, int) or base_estimate < 0:
        raise ValueError(f"gas estimate must be a non-negative int, got {base_estimate!r}")

    fraction = _ratio_fraction(buffer_ratio)
    buffer = base_estimate * fraction.numerator // fraction.denominator
    return base_estimate + buffer


class FeeEstimator:
    """Builds buffered FeeQuotes for ERC20 transfers."""

    def __init__(self, buffer_ratio: RatioInput = DEFAULT_BUFFER_RATIO):
        # Validate once up front
        _ratio_fraction(buffer_ratio)
        self.buffer_ratio = buffer_ratio

    async def estimate(
        self,
        ledger_client: LedgerClient,
        sender: str,
        contract_address: str,
        recipient: str,
        scaled_amount: int,
        buffer_ratio: Optional[RatioInput] = None,
    ) -> FeeQuote:
        """Estimate the fee for ``transfer(recipient, scaled_amount)``.

        Estimation failures usually mean the transfer itself would revert
        (e.g. insufficient token balance), so they are never retried.

        Raises:
            EstimationFailedError: If the estimate or gas price call fails
        """
        ratio = self.buffer_ratio if buffer_ratio is None else buffer_ratio

        try:
            base_estimate = await ledger_client.estimate_fee(
                sender, contract_address, "transfer", [recipient, scaled_amount], 0
            )
            unit_price = await ledger_client.get_unit_price()
        except LedgerError as e:
            raise EstimationFailedError(f"Gas estimation failed: {e}") from e

        if base_estimate < 0 or unit_price < 0:
            raise EstimationFailedError(
                f"Node returned negative fee data (gas={base_estimate}, price={unit_price})"
            )

        quote = FeeQuote.build(base_estimate, unit_price, ratio)
        logger.debug(
            f"Fee quote: gas {quote.base_estimate} -> {quote.buffered_estimate} "
            f"@ {quote.unit_price} wei = {quote.total_cost} wei"
        )
        return quote


@dataclass(frozen=True)
class Affordable:
    """Native balance covers the quoted fee."""
    native_balance: int
    total_cost: int

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Insufficient:
    """Native balance falls short of the quoted fee by ``shortfall`` wei."""
    native_balance: int
    total_cost: int
    shortfall: int

    @property
    def ok(self) -> bool:
        return False


def check_affordability(native_balance: int, quote: FeeQuote) -> Union[Affordable, Insufficient]:
    """Compare a native balance against a FeeQuote. Pure; no network access."""
    if native_balance >= quote.total_cost:
        return Affordable(native_balance=native_balance, total_cost=quote.total_cost)
    return Insufficient(
        native_balance=native_balance,
        total_cost=quote.total_cost,
        shortfall=quote.total_cost - native_balance,
    )
