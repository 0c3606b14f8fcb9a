"""Leverage intents, swap quotes and solved leverage parameters."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from position_core.constants import DEFAULT_GAS_LIMIT_MULTIPLIER, DEFAULT_MAX_FEE_PERCENTAGE
from position_core.errors import ValidationError
from position_core.fixed_point import ONE, ZERO, div, to_decimal
from position_core.tokens import Token, parse_token


@dataclass(frozen=True)
class LeverageIntent:
    principal_collateral_change: Decimal
    leverage: Decimal
    slippage: Decimal
    collateral_token: Optional[Token] = None
    max_fee_percentage: Decimal = Decimal(DEFAULT_MAX_FEE_PERCENTAGE)
    gas_limit_multiplier: Decimal = Decimal(DEFAULT_GAS_LIMIT_MULTIPLIER)
    frontend_tag: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("principal_collateral_change", "leverage", "slippage", "max_fee_percentage", "gas_limit_multiplier"):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))
        if self.collateral_token is not None:
            object.__setattr__(self, "collateral_token", parse_token(self.collateral_token))
        if self.leverage < ONE:
            raise ValidationError("Leverage must be at least 1.")
        if self.slippage < ZERO:
            raise ValidationError("Slippage cannot be negative.")

    @property
    def is_close(self) -> bool:
        return self.leverage == ONE and self.principal_collateral_change == ZERO


@dataclass(frozen=True)
class SwapQuote:
    input_amount: Decimal
    output_amount: Decimal
    call_data: str = "0x"

    @property
    def rate(self) -> Decimal:
        """Output units received per input unit."""

        return div(self.output_amount, self.input_amount)


@dataclass(frozen=True)
class LeverageSolution:
    debt_change: Decimal
    swap_price: Decimal
    swap_from: Optional[Token]
    swap_to: Optional[Token]
    swap_amount: Decimal
    quoted_output: Decimal
    min_return: Decimal
    call_data: str = "0x"
