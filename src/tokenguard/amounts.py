"""Conversion between human-readable token amounts and integer base units.

All arithmetic goes through ``decimal.Decimal`` at a precision large enough
for any uint256 value, so an amount such as ``0.1`` with 18 decimals scales to
exactly ``100000000000000000``. Binary floats are rejected outright: by the
time a float reaches this module its value is already inexact.
"""

import decimal
from decimal import ROUND_HALF_UP, Decimal, DecimalException, InvalidOperation
from typing import Optional, Union

from tokenguard.errors import InvalidAmountError

# uint256 has 78 digits; leave headroom for 255 decimals of scaling
SCALING_PRECISION = 400

MAX_DECIMALS = 255

MAX_UINT256 = 2**256 - 1
MAX_UINT256_DIGITS = len(str(MAX_UINT256))

AmountInput = Union[str, int, Decimal]


def _scaling_context() -> decimal.Context:
    return decimal.Context(prec=SCALING_PRECISION, rounding=ROUND_HALF_UP)


def _check_decimals(decimals: int) -> None:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise ValueError(f"decimals must be an int, got {type(decimals).__name__}")
    if not 0 <= decimals <= MAX_DECIMALS:
        raise ValueError(f"decimals must be between 0 and {MAX_DECIMALS}, got {decimals}")


def parse_amount(value: AmountInput) -> Decimal:
    """Parse user input into a non-negative finite Decimal.

    Args:
        value: Decimal string ("2.5", " 10 "), int or Decimal

    Returns:
        Parsed amount

    Raises:
        InvalidAmountError: For floats, empty/non-numeric text, NaN,
            infinities and negative values
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(
            f"Amount must be given as a decimal string, not {type(value).__name__}"
        )

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidAmountError("Amount is required")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise InvalidAmountError(f"Invalid amount: {value!r}")
    else:
        raise InvalidAmountError(f"Unsupported amount type: {type(value).__name__}")

    if not amount.is_finite():
        raise InvalidAmountError(f"Amount must be finite: {value!r}")
    if amount < 0:
        raise InvalidAmountError(f"Amount must not be negative: {value!r}")

    return amount


def fractional_digits(amount: Decimal) -> int:
    """Number of significant digits after the decimal point.

    Read from the digit tuple so huge exponents never touch a context.
    """
    _, digits, exponent = amount.as_tuple()
    significant = "".join(map(str, digits)).rstrip("0")
    if exponent >= 0 or not significant:
        return 0
    return max(-exponent - (len(digits) - len(significant)), 0)


def to_base_units(human_amount: AmountInput, decimals: int) -> int:
    """Scale a human amount to integer base units.

    The product ``human_amount * 10**decimals`` is computed exactly and then
    rounded half-up to the nearest integer unit.

    Raises:
        InvalidAmountError: If ``human_amount`` is not a non-negative decimal
            or the scaled amount does not fit in a uint256
        ValueError: If ``decimals`` is outside 0..255
    """
    _check_decimals(decimals)
    amount = parse_amount(human_amount)

    # Anything with 79+ integer digits once scaled is out of range
    if amount and amount.adjusted() + decimals >= MAX_UINT256_DIGITS:
        raise InvalidAmountError(f"Amount too large for a uint256 token amount: {human_amount}")

    ctx = _scaling_context()
    try:
        scaled = ctx.multiply(amount, Decimal(10) ** decimals)
        result = int(scaled.to_integral_value(rounding=ROUND_HALF_UP, context=ctx))
    except DecimalException as e:
        raise InvalidAmountError(f"Cannot scale amount {human_amount}: {e!r}") from e

    if result > MAX_UINT256:
        raise InvalidAmountError(f"Amount too large for a uint256 token amount: {human_amount}")

    return result


def to_human_units(
    scaled: int,
    decimals: int,
    places: Optional[int] = None,
) -> Decimal:
    """Convert integer base units back to a human amount.

    Without ``places`` the result is exact. With ``places`` the value is
    rounded half-up for display, never truncated.
    """
    _check_decimals(decimals)
    if isinstance(scaled, bool) or not isinstance(scaled, int):
        raise ValueError(f"scaled amount must be an int, got {type(scaled).__name__}")
    if scaled < 0:
        raise ValueError("scaled amount must not be negative")

    ctx = _scaling_context()
    value = ctx.divide(Decimal(scaled), Decimal(10) ** decimals)

    if places is not None:
        if places < 0:
            raise ValueError("places must not be negative")
        value = value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP, context=ctx)

    return value


def format_amount(value: Decimal, symbol: str = "") -> str:
    """Render an amount for display without exponent notation."""
    text = format(value.normalize(context=_scaling_context()), "f") if value else "0"
    return f"{text} {symbol}".strip()
