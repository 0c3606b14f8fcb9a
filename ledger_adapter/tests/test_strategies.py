"""Manage-call construction tests for each vault strategy."""

import unittest
from decimal import Decimal

from position_core.errors import UnsupportedCombinationError, ValidationError
from position_core.fixed_point import DEBT_CHANGE_TO_CLOSE
from position_core.tokens import Token
from settings.config import load_network_config

from ledger_adapter.calls import MAX_RAW_AMOUNT, approve_call, encode_tag, signed_change, whitelist_call
from ledger_adapter.models import EMPTY_PERMIT_SIGNATURE, PermitSignature
from ledger_adapter.strategies import (
    ExecuteArgs,
    InterestRateStrategy,
    NativePeggedStrategy,
    UnderlyingCollateralStrategy,
    WrappedCappedCollateralStrategy,
    select_strategy,
)

OWNER = "0x00000000000000000000000000000000000000aa"
WEI = 10**18


def _args(underlying, collateral, collateral_change, debt_change, **overrides):
    values = dict(
        owner=OWNER,
        underlying_token=underlying,
        collateral_token=collateral,
        collateral_change=Decimal(collateral_change),
        debt_change=Decimal(debt_change),
        max_fee_percentage=Decimal(1),
    )
    values.update(overrides)
    return ExecuteArgs(**values)


class SelectStrategyTests(unittest.TestCase):
    def test_variants(self) -> None:
        self.assertIsInstance(select_strategy(Token.WSTETH_V1, Token.WSTETH_V1), UnderlyingCollateralStrategy)
        self.assertIsInstance(select_strategy(Token.WSTETH_V1, Token.STETH), NativePeggedStrategy)
        self.assertIsInstance(select_strategy(Token.WSTETH_V1, Token.ETH), NativePeggedStrategy)
        self.assertIsInstance(select_strategy(Token.WCRETH_V1, Token.RETH_V1), WrappedCappedCollateralStrategy)
        self.assertIsInstance(select_strategy(Token.WBTC, Token.WBTC), InterestRateStrategy)

    def test_unsupported_pair(self) -> None:
        with self.assertRaises(UnsupportedCombinationError) as ctx:
            select_strategy(Token.WSTETH, Token.STETH)
        self.assertIn("does not support collateral token stETH", str(ctx.exception))
        with self.assertRaises(UnsupportedCombinationError):
            select_strategy(Token.WCRETH_V1, Token.WBTC)


class BuildCallTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = load_network_config("mainnet")

    def test_underlying_call_shape(self) -> None:
        call = UnderlyingCollateralStrategy().build_call(
            self.config, _args(Token.WSTETH_V1, Token.WSTETH_V1, "2", "-100")
        )
        self.assertEqual(call.to_address, self.config.position_manager)
        self.assertEqual(call.method, "managePosition")
        self.assertEqual(
            call.args,
            (
                self.config.get_token_address(Token.WSTETH_V1),
                OWNER,
                2 * WEI,
                True,
                100 * WEI,
                False,
                WEI,
                EMPTY_PERMIT_SIGNATURE,
            ),
        )
        self.assertEqual(call.value, 0)

    def test_interest_rate_call_targets_own_manager(self) -> None:
        call = InterestRateStrategy().build_call(self.config, _args(Token.WSTETH, Token.WSTETH, "1", "500"))
        self.assertEqual(call.to_address, self.config.interest_rate_position_manager)
        self.assertEqual(call.args[2:6], (WEI, True, 500 * WEI, True))

    def test_delegate_call_carries_both_permits(self) -> None:
        debt_permit = PermitSignature(token="0xr", value=1, deadline=2, v=27, r="0x01", s="0x02")
        call = NativePeggedStrategy().build_call(
            self.config,
            _args(Token.WSTETH_V1, Token.STETH, "1", "-10", debt_permit=debt_permit),
        )
        self.assertEqual(call.method, "managePositionStETH")
        self.assertEqual(call.to_address, self.config.position_manager_steth)
        self.assertEqual(call.args[5], debt_permit)
        self.assertEqual(call.args[6], EMPTY_PERMIT_SIGNATURE)

    def test_eth_deposit_sends_value(self) -> None:
        call = NativePeggedStrategy().build_call(self.config, _args(Token.WSTETH_V1, Token.ETH, "1.5", "3000"))
        self.assertEqual(call.method, "managePositionETH")
        self.assertEqual(call.value, 15 * WEI // 10)
        self.assertEqual(call.args[:2], (3000 * WEI, True))

    def test_eth_withdrawal_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            NativePeggedStrategy().build_call(self.config, _args(Token.WSTETH_V1, Token.ETH, "-1", "0"))
        self.assertIn("ETH withdrawal", str(ctx.exception))

    def test_close_sentinel_maps_to_max_amount(self) -> None:
        self.assertEqual(signed_change(DEBT_CHANGE_TO_CLOSE), (MAX_RAW_AMOUNT, False))
        call = InterestRateStrategy().build_call(
            self.config, _args(Token.WSTETH, Token.WSTETH, "0", DEBT_CHANGE_TO_CLOSE)
        )
        self.assertEqual(call.args[4:6], (MAX_RAW_AMOUNT, False))

    def test_frontend_tag_and_gas_multiplier(self) -> None:
        call = InterestRateStrategy().build_call(
            self.config,
            _args(
                Token.WSTETH,
                Token.WSTETH,
                "1",
                "0",
                frontend_tag="raft",
                gas_limit_multiplier=Decimal("1.2"),
            ),
        )
        self.assertEqual(call.tag_data, encode_tag("raft"))
        self.assertEqual(call.tag_data, "0x72616674")
        self.assertEqual(call.gas_limit_multiplier, Decimal("1.2"))


class CallBuilderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = load_network_config("mainnet")

    def test_approve_uses_token_decimals(self) -> None:
        call = approve_call(self.config, Token.WBTC, "0xspender", Decimal("0.5"))
        self.assertEqual(call.to_address, self.config.get_token_address(Token.WBTC))
        self.assertEqual(call.args, ("0xspender", 50_000_000))

    def test_approve_native_asset_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            approve_call(self.config, Token.ETH, "0xspender", Decimal(1))

    def test_whitelist_targets_given_manager(self) -> None:
        call = whitelist_call(self.config.position_manager, "0xdelegate")
        self.assertEqual(call.to_address, self.config.position_manager)
        self.assertEqual(call.args, ("0xdelegate", True))
        with self.assertRaises(ValidationError):
            whitelist_call(self.config.position_manager, "")


if __name__ == "__main__":
    unittest.main()
