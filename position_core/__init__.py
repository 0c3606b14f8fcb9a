from .constants import MIN_COLLATERAL_RATIO, MIN_NET_DEBT
from .errors import (
    AuthorizationFailure,
    PositionError,
    UnsupportedCombinationError,
    UpstreamReadError,
    ValidationError,
)
from .fixed_point import DEBT_CHANGE_TO_CLOSE, MAX_DECIMAL, PRECISION, to_decimal
from .models import Position
from .tokens import R_TOKEN, Token

__all__ = [
    "AuthorizationFailure",
    "DEBT_CHANGE_TO_CLOSE",
    "MAX_DECIMAL",
    "MIN_COLLATERAL_RATIO",
    "MIN_NET_DEBT",
    "PRECISION",
    "Position",
    "PositionError",
    "R_TOKEN",
    "Token",
    "UnsupportedCombinationError",
    "UpstreamReadError",
    "ValidationError",
    "to_decimal",
]
