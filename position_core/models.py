"""Collateralized-debt position value object."""

from decimal import Decimal
from typing import Optional

from .constants import MIN_COLLATERAL_RATIO, MIN_NET_DEBT
from .errors import ValidationError
from .fixed_point import MAX_DECIMAL, ZERO, DecimalLike, div, mul, to_decimal
from .tokens import Token, is_underlying_token, parse_token


class Position:
    """Collateral and debt amounts of one vault position.

    The position does not talk to the ledger; it is used for ratio and validity
    calculations before an intent is planned. Amounts are never negative.
    """

    def __init__(
        self,
        underlying_token: Token,
        collateral: DecimalLike = ZERO,
        debt: DecimalLike = ZERO,
    ) -> None:
        underlying = parse_token(underlying_token)
        if not is_underlying_token(underlying):
            raise ValidationError(f"{underlying} is not an underlying collateral token.")
        self._underlying_token = underlying
        self._collateral = _non_negative(collateral)
        self._debt = _non_negative(debt)
        self._principal_collateral: Optional[Decimal] = None

    @property
    def underlying_token(self) -> Token:
        return self._underlying_token

    @property
    def collateral(self) -> Decimal:
        return self._collateral

    @property
    def debt(self) -> Decimal:
        return self._debt

    @property
    def principal_collateral(self) -> Optional[Decimal]:
        """Collateral the owner put in themselves, for leveraged positions."""

        return self._principal_collateral

    def set_collateral(self, collateral: DecimalLike) -> None:
        self._collateral = _non_negative(collateral)

    def set_debt(self, debt: DecimalLike) -> None:
        self._debt = _non_negative(debt)

    def set_principal_collateral(self, principal_collateral: Optional[DecimalLike]) -> None:
        if principal_collateral is None:
            self._principal_collateral = None
            return
        self._principal_collateral = _non_negative(principal_collateral)

    @property
    def min_collateral_ratio(self) -> Decimal:
        return MIN_COLLATERAL_RATIO[self._underlying_token]

    @property
    def min_net_debt(self) -> Decimal:
        return MIN_NET_DEBT[self._underlying_token]

    def collateral_ratio(self, price: DecimalLike) -> Decimal:
        """Return collateral value over debt, or ``MAX_DECIMAL`` when there is no debt."""

        if self._debt == ZERO:
            return MAX_DECIMAL
        return div(mul(self._collateral, to_decimal(price)), self._debt)

    def is_collateral_ratio_below_minimum(self, price: DecimalLike) -> bool:
        return self.collateral_ratio(price) < self.min_collateral_ratio

    def liquidation_price_limit(self) -> Decimal:
        """Return the collateral price under which the position can be liquidated."""

        if self._collateral == ZERO:
            raise ValidationError("Liquidation price limit is undefined for a position without collateral.")
        return div(mul(self.min_collateral_ratio, self._debt), self._collateral)

    @property
    def is_empty(self) -> bool:
        return self._collateral == ZERO and self._debt == ZERO

    @property
    def is_opened(self) -> bool:
        return self._collateral > ZERO and self._debt >= self.min_net_debt

    def is_valid(self, price: DecimalLike) -> bool:
        if self.is_empty:
            return True
        return self.is_opened and self.collateral_ratio(price) >= self.min_collateral_ratio

    def snapshot(self) -> "Position":
        copy = Position(self._underlying_token, self._collateral, self._debt)
        copy._principal_collateral = self._principal_collateral
        return copy

    def __repr__(self) -> str:
        return (
            f"Position(underlying_token={self._underlying_token.value!r}, "
            f"collateral={self._collateral}, debt={self._debt})"
        )


def _non_negative(amount: DecimalLike) -> Decimal:
    value = to_decimal(amount)
    if value < ZERO:
        raise ValidationError("Amount cannot be negative")
    return value
