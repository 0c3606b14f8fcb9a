"""Vault strategies: map resolved amounts and artifacts onto a manage call.

Each strategy targets one position manager entry point. Whichever strategy is
selected, amounts are passed as absolute ledger integers plus an increase flag.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from position_core.constants import DEFAULT_GAS_LIMIT_MULTIPLIER
from position_core.errors import UnsupportedCombinationError, ValidationError
from position_core.fixed_point import ZERO, to_raw
from position_core.tokens import (
    Token,
    is_interest_rate_vault,
    is_native_pegged_token,
    is_wrappable_capped_token,
)
from settings.config import NetworkConfig

from .calls import encode_tag, signed_change
from .models import EMPTY_PERMIT_SIGNATURE, LedgerCall, PermitSignature


@dataclass(frozen=True)
class ExecuteArgs:
    owner: str
    underlying_token: Token
    collateral_token: Token
    collateral_change: Decimal
    debt_change: Decimal
    max_fee_percentage: Decimal
    collateral_permit: PermitSignature = EMPTY_PERMIT_SIGNATURE
    debt_permit: PermitSignature = EMPTY_PERMIT_SIGNATURE
    gas_limit_multiplier: Decimal = Decimal(DEFAULT_GAS_LIMIT_MULTIPLIER)
    frontend_tag: Optional[str] = None


class VaultStrategy:
    name = "base"

    def build_call(self, config: NetworkConfig, args: ExecuteArgs) -> LedgerCall:
        raise NotImplementedError

    def _call(
        self,
        config: NetworkConfig,
        args: ExecuteArgs,
        method: str,
        arguments: Tuple[object, ...],
        value: int = 0,
    ) -> LedgerCall:
        return LedgerCall(
            to_address=config.get_position_manager_address(args.underlying_token, args.collateral_token),
            method=method,
            args=arguments,
            value=value,
            gas_limit_multiplier=args.gas_limit_multiplier,
            tag_data=encode_tag(args.frontend_tag),
        )


class UnderlyingCollateralStrategy(VaultStrategy):
    """Underlying token on a legacy vault, handled by the base position manager."""

    name = "underlying"

    def build_call(self, config: NetworkConfig, args: ExecuteArgs) -> LedgerCall:
        collateral_amount, collateral_increase = signed_change(args.collateral_change)
        debt_amount, debt_increase = signed_change(args.debt_change)
        return self._call(
            config,
            args,
            "managePosition",
            (
                config.get_token_address(args.collateral_token),
                args.owner,
                collateral_amount,
                collateral_increase,
                debt_amount,
                debt_increase,
                to_raw(args.max_fee_percentage),
                args.collateral_permit,
            ),
        )


class InterestRateStrategy(UnderlyingCollateralStrategy):
    """Interest-rate vaults share the base argument shape on their own manager."""

    name = "interest-rate"


class WrappedCappedCollateralStrategy(VaultStrategy):
    """Collateral wrapped into the capped underlying by a delegate manager."""

    name = "wrapped-capped"
    method = "managePosition"

    def build_call(self, config: NetworkConfig, args: ExecuteArgs) -> LedgerCall:
        collateral_amount, collateral_increase = signed_change(args.collateral_change)
        debt_amount, debt_increase = signed_change(args.debt_change)
        return self._call(
            config,
            args,
            self.method,
            (
                collateral_amount,
                collateral_increase,
                debt_amount,
                debt_increase,
                to_raw(args.max_fee_percentage),
                args.debt_permit,
                args.collateral_permit,
            ),
        )


class NativePeggedStrategy(WrappedCappedCollateralStrategy):
    """Native asset or its liquid-staking peg, routed through the stETH manager."""

    name = "native-pegged"
    method = "managePositionStETH"

    def build_call(self, config: NetworkConfig, args: ExecuteArgs) -> LedgerCall:
        if args.collateral_token != Token.ETH:
            return super().build_call(config, args)
        if args.collateral_change < ZERO:
            raise ValidationError("ETH withdrawal from the position is not supported")
        debt_amount, debt_increase = signed_change(args.debt_change)
        return self._call(
            config,
            args,
            "managePositionETH",
            (
                debt_amount,
                debt_increase,
                to_raw(args.max_fee_percentage),
                args.debt_permit,
            ),
            value=to_raw(args.collateral_change),
        )


def select_strategy(underlying: Token, collateral: Token) -> VaultStrategy:
    if is_interest_rate_vault(underlying):
        if collateral != underlying:
            raise UnsupportedCombinationError(
                f"Underlying collateral token {underlying} does not support collateral token {collateral}"
            )
        return InterestRateStrategy()
    if collateral == underlying:
        return UnderlyingCollateralStrategy()
    if is_wrappable_capped_token(collateral):
        return WrappedCappedCollateralStrategy()
    if is_native_pegged_token(collateral):
        return NativePeggedStrategy()
    raise UnsupportedCombinationError(
        f"Underlying collateral token {underlying} does not support collateral token {collateral}"
    )
