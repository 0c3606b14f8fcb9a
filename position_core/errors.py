"""Error taxonomy shared by the planner, solver and adapters."""


class PositionError(Exception):
    """Base error for position planning failures."""


class ValidationError(PositionError, ValueError):
    """Raised when an intent, amount or resume value is invalid."""


class UnsupportedCombinationError(PositionError, ValueError):
    """Raised when a collateral token is not supported by the underlying vault."""


class AuthorizationFailure(PositionError, RuntimeError):
    """Raised when signing is rejected or an approval/whitelist transaction reverts."""


class UpstreamReadError(PositionError, RuntimeError):
    """Raised when an allowance, whitelist, code or quote read fails."""
