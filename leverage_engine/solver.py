"""Leverage arithmetic and the quote-driven leverage solver.

``swap_price`` is the amount of collateral received for one unit of debt
token, as observed on the swap router. With collateral price ``P`` the
debt-per-collateral swap rate is ``1 / swap_price``, so ``P / rate`` reduces
to ``P * swap_price``.
"""

import logging
from decimal import Decimal

from position_core.constants import SWAP_SLIPPAGE_BUFFER
from position_core.errors import ValidationError
from position_core.fixed_point import (
    DEBT_CHANGE_TO_CLOSE,
    ONE,
    ZERO,
    DecimalLike,
    absolute,
    add,
    div,
    is_close_sentinel,
    mul,
    sub,
    to_decimal,
)
from position_core.models import Position
from position_core.tokens import R_TOKEN
from settings.config import NetworkConfig

from .models import LeverageIntent, LeverageSolution
from .quotes import ONE_INCH, SwapQuoteProbe

logger = logging.getLogger(__name__)


def solve_debt_change(
    current_principal_collateral: Decimal,
    current_debt: Decimal,
    leverage: Decimal,
    principal_collateral_change: Decimal,
    price: Decimal,
    borrowing_rate: Decimal,
    swap_price: Decimal,
) -> Decimal:
    """Debt change that brings the position to ``leverage`` times its principal."""

    if leverage < ONE:
        raise ValidationError("Leverage must be at least 1.")
    if leverage == ONE and principal_collateral_change == ZERO:
        return DEBT_CHANGE_TO_CLOSE
    if price <= ZERO:
        raise ValidationError("Collateral price must be positive.")
    if swap_price <= ZERO:
        raise ValidationError("Swap price must be positive.")

    price_ratio = mul(price, swap_price)
    denominator = add(sub(price_ratio, mul(leverage, price_ratio)), mul(leverage, add(ONE, borrowing_rate)))
    if denominator <= ZERO:
        raise ValidationError("Leverage cannot be reached at the quoted swap price.")

    if current_principal_collateral == ZERO and current_debt == ZERO:
        if principal_collateral_change <= ZERO:
            raise ValidationError("Opening a leveraged position requires a collateral deposit.")
        return div(mul(mul(price, principal_collateral_change), sub(leverage, ONE)), denominator)

    new_total_collateral = add(current_principal_collateral, principal_collateral_change)
    if new_total_collateral < ZERO:
        raise ValidationError("Principal collateral change exceeds the position's principal collateral.")
    new_total_debt = div(mul(mul(price, new_total_collateral), sub(leverage, ONE)), denominator)
    return sub(new_total_debt, current_debt)


def swap_amount(debt_change: Decimal, swap_price: Decimal, slippage_buffer: Decimal = SWAP_SLIPPAGE_BUFFER) -> Decimal:
    """Debt tokens to sell when borrowing, collateral to sell when repaying."""

    if debt_change > ZERO:
        return debt_change
    return mul(mul(absolute(debt_change), add(ONE, slippage_buffer)), swap_price)


def min_return(quoted_output: Decimal, slippage: Decimal, max_slippage: Decimal) -> Decimal:
    if slippage < ZERO:
        raise ValidationError("Slippage cannot be negative.")
    if slippage > max_slippage:
        raise ValidationError(f"Slippage {slippage} exceeds the router maximum of {max_slippage}")
    return mul(quoted_output, sub(ONE, slippage))


class LeverageSolver:
    """Probe the swap router, then size the debt change and the swap."""

    def __init__(
        self,
        config: NetworkConfig,
        quote_probe: SwapQuoteProbe,
        router: str = ONE_INCH,
        slippage_buffer: Decimal = SWAP_SLIPPAGE_BUFFER,
    ) -> None:
        self._config = config
        self._probe = quote_probe
        self._router = config.swap_router(router)
        self._slippage_buffer = slippage_buffer

    def solve(
        self,
        position: Position,
        intent: LeverageIntent,
        price: DecimalLike,
        borrowing_rate: DecimalLike,
    ) -> LeverageSolution:
        price = to_decimal(price)
        borrowing_rate = to_decimal(borrowing_rate)
        if intent.slippage > self._router.max_slippage:
            raise ValidationError(
                f"Slippage {intent.slippage} exceeds the router maximum of {self._router.max_slippage}"
            )

        collateral_token = intent.collateral_token or position.underlying_token
        principal = position.principal_collateral
        if principal is None:
            principal = position.collateral

        probe_amount = mul(mul(absolute(intent.principal_collateral_change), price), sub(intent.leverage, ONE))
        if probe_amount == ZERO:
            probe_amount = position.debt if position.debt > ZERO else price
        probe = self._probe.quote(R_TOKEN, collateral_token, probe_amount, intent.slippage)
        swap_price = probe.rate

        debt_change = solve_debt_change(
            principal,
            position.debt,
            intent.leverage,
            intent.principal_collateral_change,
            price,
            borrowing_rate,
            swap_price,
        )
        if is_close_sentinel(debt_change) or debt_change < ZERO:
            repaid = position.debt if is_close_sentinel(debt_change) else absolute(debt_change)
            swap_from, swap_to = collateral_token, R_TOKEN
            amount = swap_amount(repaid.copy_negate(), swap_price, self._slippage_buffer)
        else:
            swap_from, swap_to = R_TOKEN, collateral_token
            amount = swap_amount(debt_change, swap_price, self._slippage_buffer)

        logger.info(
            "Leverage %s on %s: debt change %s, swap %s %s",
            intent.leverage,
            collateral_token,
            debt_change,
            amount,
            swap_from,
        )
        if amount == ZERO:
            return LeverageSolution(
                debt_change=debt_change,
                swap_price=swap_price,
                swap_from=None,
                swap_to=None,
                swap_amount=ZERO,
                quoted_output=ZERO,
                min_return=ZERO,
            )

        quote = self._probe.quote(swap_from, swap_to, amount, intent.slippage)
        return LeverageSolution(
            debt_change=debt_change,
            swap_price=swap_price,
            swap_from=swap_from,
            swap_to=swap_to,
            swap_amount=amount,
            quoted_output=quote.output_amount,
            min_return=min_return(quote.output_amount, intent.slippage, self._router.max_slippage),
            call_data=quote.call_data,
        )
