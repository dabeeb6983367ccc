"""
AMA amount handling.

The chain stores amounts as integers of the atomic unit (10^-9 AMA). Everything
above the wire works with ``Decimal`` so fee arithmetic never picks up float
rounding.
"""

from decimal import Context, Decimal, Inexact, InvalidOperation, localcontext
from typing import Union

ATOMIC_DECIMALS = 9
ATOMIC_PER_AMA = 10 ** ATOMIC_DECIMALS
TOKEN_SYMBOL = "AMA"

AmountLike = Union[str, int, float, Decimal]


class InvalidAmountError(ValueError):
    """Raised when an amount cannot be used for a transfer."""
    pass


def parse_amount(value: AmountLike) -> Decimal:
    """Parse a user or model supplied amount into a positive Decimal."""
    if isinstance(value, bool):
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"Invalid amount: {value!r}")

    if not amount.is_finite():
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    if amount <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {value!r}")
    with _exact_context(amount):
        exponent = amount.normalize().as_tuple().exponent
    if exponent < -ATOMIC_DECIMALS:
        raise InvalidAmountError(
            f"Amount {value!r} has more than {ATOMIC_DECIMALS} decimal places"
        )
    return amount


def _exact_context(amount: Decimal):
    """A context wide enough that scaling ``amount`` to atomic units never rounds."""
    ctx = Context(prec=len(amount.as_tuple().digits) + ATOMIC_DECIMALS + 1)
    ctx.traps[Inexact] = True
    return localcontext(ctx)


def to_atomic(value: AmountLike) -> int:
    """Convert an AMA amount to atomic units."""
    amount = parse_amount(value)
    try:
        with _exact_context(amount):
            scaled = amount * ATOMIC_PER_AMA
    except Inexact:
        raise InvalidAmountError(f"Amount {value!r} cannot be represented exactly in atomic units")
    if scaled != scaled.to_integral_value():
        raise InvalidAmountError(f"Amount {value!r} is not a whole number of atomic units")
    return int(scaled)


def from_atomic(atomic: Union[int, str]) -> Decimal:
    """Convert atomic units back to AMA."""
    return Decimal(int(atomic)) / Decimal(ATOMIC_PER_AMA)


def format_amount(amount: Decimal, places: int = 4) -> str:
    """Render an amount the way balances are shown to users (fixed places)."""
    quantum = Decimal(1).scaleb(-places)
    return str(Decimal(amount).quantize(quantum))


def balance_to_decimal(balance: AmountLike) -> Decimal:
    """Parse a balance string from the oracle; unparseable values count as zero."""
    try:
        value = Decimal(str(balance).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return value if value.is_finite() else Decimal("0")
