"""
Decimal handling for amounts and rates.

Amounts are positive decimals with at most two fractional digits. Rates are
annual percentages. Float input is converted through str() so that 0.1
stays 0.1.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from .errors import InvalidInputError

AmountLike = Union[str, int, float, Decimal]

ZERO = Decimal('0')
CENT = Decimal('0.01')


def to_decimal(value: AmountLike, field_name: str = "amount") -> Decimal:
    """Convert to Decimal, rejecting NaN, infinity and garbage"""
    if isinstance(value, bool):
        raise InvalidInputError(f"Invalid {field_name}: {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInputError(f"Invalid {field_name}: {value!r}")
    if not result.is_finite():
        raise InvalidInputError(f"Invalid {field_name}: {value!r}")
    return result


def quantize_money(value: Decimal, precision: int = 2) -> Decimal:
    """Round half-up to currency precision"""
    return value.quantize(Decimal('0.1') ** precision, rounding=ROUND_HALF_UP)


def parse_amount(value: AmountLike, precision: int = 2) -> Decimal:
    """
    Validate a transaction amount.

    Args:
        value: Raw amount
        precision: Maximum number of fractional digits allowed

    Returns:
        Amount quantized to `precision` digits

    Raises:
        InvalidInputError: If not positive or too precise
    """
    amount = to_decimal(value)
    if amount <= ZERO:
        raise InvalidInputError("Amount must be greater than zero")
    if amount.as_tuple().exponent < -precision:
        raise InvalidInputError(
            f"Amount {value!r} has more than {precision} decimal places"
        )
    return quantize_money(amount, precision)


def parse_rate(value: AmountLike, upper: Decimal = Decimal('100'),
               inclusive_upper: bool = True) -> Decimal:
    """
    Validate an annual percentage rate.

    The lower bound is always exclusive. The upper bound is inclusive for
    stored rules and exclusive for rule requests.
    """
    rate = to_decimal(value, "rate")
    above_upper = rate > upper if inclusive_upper else rate >= upper
    if rate <= ZERO or above_upper:
        bracket = "]" if inclusive_upper else ")"
        raise InvalidInputError(f"Interest rate must be in (0, {upper}{bracket}")
    return rate
