"""Token kinds and their static classification."""

from enum import Enum
from typing import FrozenSet


class Token(str, Enum):
    ETH = "ETH"
    STETH = "stETH"
    WSTETH_V1 = "wstETH-v1"
    RETH_V1 = "rETH-v1"
    WCRETH_V1 = "wcrETH-v1"
    WSTETH = "wstETH"
    WETH = "WETH"
    RETH = "rETH"
    WBTC = "WBTC"
    CBETH = "cbETH"
    SWETH = "swETH"
    R = "R"

    def __str__(self) -> str:
        return self.value


R_TOKEN = Token.R

LEGACY_UNDERLYING_TOKENS: FrozenSet[Token] = frozenset({Token.WSTETH_V1, Token.WCRETH_V1})

INTEREST_RATE_UNDERLYING_TOKENS: FrozenSet[Token] = frozenset(
    {Token.WSTETH, Token.WETH, Token.RETH, Token.WBTC, Token.CBETH, Token.SWETH}
)

UNDERLYING_COLLATERAL_TOKENS: FrozenSet[Token] = LEGACY_UNDERLYING_TOKENS | INTEREST_RATE_UNDERLYING_TOKENS

WRAPPABLE_CAPPED_COLLATERAL_TOKENS: FrozenSet[Token] = frozenset({Token.RETH_V1})

NATIVE_PEGGED_COLLATERAL_TOKENS: FrozenSet[Token] = frozenset({Token.STETH, Token.ETH})

COLLATERAL_TOKENS: FrozenSet[Token] = (
    UNDERLYING_COLLATERAL_TOKENS | WRAPPABLE_CAPPED_COLLATERAL_TOKENS | NATIVE_PEGGED_COLLATERAL_TOKENS
)


def parse_token(value: "Token | str") -> Token:
    if isinstance(value, Token):
        return value
    try:
        return Token(value)
    except ValueError as exc:
        raise ValueError(f"Unknown token: {value}") from exc


def is_underlying_token(token: Token) -> bool:
    return token in UNDERLYING_COLLATERAL_TOKENS


def is_collateral_token(token: Token) -> bool:
    return token in COLLATERAL_TOKENS


def is_interest_rate_vault(token: Token) -> bool:
    return token in INTEREST_RATE_UNDERLYING_TOKENS


def is_legacy_vault(token: Token) -> bool:
    return token in LEGACY_UNDERLYING_TOKENS


def is_wrappable_capped_token(token: Token) -> bool:
    return token in WRAPPABLE_CAPPED_COLLATERAL_TOKENS


def is_native_pegged_token(token: Token) -> bool:
    return token in NATIVE_PEGGED_COLLATERAL_TOKENS
