"""18-digit fixed-point helpers over ``decimal.Decimal``."""

from decimal import ROUND_DOWN, Context, Decimal, localcontext
from typing import Union

from .errors import ValidationError

PRECISION = 18

DecimalLike = Union[Decimal, int, str]

ZERO = Decimal(0)
ONE = Decimal(1)

_QUANTUM = Decimal(1).scaleb(-PRECISION)
_CONTEXT = Context(prec=160, rounding=ROUND_DOWN)

MAX_DECIMAL = Decimal(2**256 - 1).scaleb(-PRECISION, context=_CONTEXT)
DEBT_CHANGE_TO_CLOSE = MAX_DECIMAL.copy_negate()


def to_decimal(value: DecimalLike) -> Decimal:
    """Coerce ``value`` into a fixed-point decimal truncated to ``PRECISION`` digits."""

    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError("Amounts must be Decimal, int or str, not float.")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except ArithmeticError as exc:
            raise ValidationError(f"Invalid decimal amount: {value!r}") from exc
    else:
        raise ValidationError(f"Unsupported amount type: {type(value).__name__}")
    if not result.is_finite():
        raise ValidationError("Amounts must be finite.")
    return truncate(result)


def truncate(value: Decimal) -> Decimal:
    with localcontext(_CONTEXT):
        return value.quantize(_QUANTUM, rounding=ROUND_DOWN)


def mul(left: Decimal, right: Decimal) -> Decimal:
    with localcontext(_CONTEXT):
        return truncate(left * right)


def div(left: Decimal, right: Decimal) -> Decimal:
    if right == ZERO:
        raise ZeroDivisionError("Fixed-point division by zero.")
    with localcontext(_CONTEXT):
        return truncate(left / right)


def add(left: Decimal, right: Decimal) -> Decimal:
    with localcontext(_CONTEXT):
        return truncate(left + right)


def sub(left: Decimal, right: Decimal) -> Decimal:
    with localcontext(_CONTEXT):
        return truncate(left - right)


def absolute(value: Decimal) -> Decimal:
    # exact for values wider than the ambient context precision
    return value.copy_abs()


def is_close_sentinel(value: Decimal) -> bool:
    return value == DEBT_CHANGE_TO_CLOSE


def to_raw(value: Decimal, decimals: int = PRECISION) -> int:
    """Scale ``value`` to an integer ledger amount with ``decimals`` digits, truncating."""

    with localcontext(_CONTEXT):
        return int(value.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN))


def from_raw(value: int, decimals: int = PRECISION) -> Decimal:
    with localcontext(_CONTEXT):
        return truncate(Decimal(value).scaleb(-decimals))
