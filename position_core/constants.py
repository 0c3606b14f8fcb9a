from decimal import Decimal
from typing import Dict

from .tokens import Token

# Minimum collateral ratio per underlying vault (1.1 == 110%)
MIN_COLLATERAL_RATIO: Dict[Token, Decimal] = {
    Token.WSTETH_V1: Decimal("1.1"),
    Token.WCRETH_V1: Decimal("1.2"),
    Token.WSTETH: Decimal("1.2"),
    Token.WETH: Decimal("1.2"),
    Token.RETH: Decimal("1.2"),
    Token.WBTC: Decimal("1.3"),
    Token.CBETH: Decimal("1.2"),
    Token.SWETH: Decimal("1.3"),
}

# Minimum debt for a position to count as opened, in R
MIN_NET_DEBT: Dict[Token, Decimal] = {
    Token.WSTETH_V1: Decimal(3000),
    Token.WCRETH_V1: Decimal(3000),
    Token.WSTETH: Decimal(500),
    Token.WETH: Decimal(500),
    Token.RETH: Decimal(500),
    Token.WBTC: Decimal(500),
    Token.CBETH: Decimal(500),
    Token.SWETH: Decimal(500),
}

PERMIT_DEADLINE_SHIFT = 30 * 60  # seconds

# Extra collateral swapped when repaying through a swap, covers quote-to-execution drift
SWAP_SLIPPAGE_BUFFER = Decimal("0.005")

DEFAULT_MAX_FEE_PERCENTAGE = Decimal(1)
DEFAULT_GAS_LIMIT_MULTIPLIER = Decimal(1)
