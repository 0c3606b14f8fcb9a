"""Build ledger calls for whitelisting and on-ledger approvals."""

from decimal import Decimal
from typing import Optional, Tuple

from position_core.errors import ValidationError
from position_core.fixed_point import PRECISION, ZERO, absolute, is_close_sentinel, to_raw
from position_core.tokens import Token
from settings.config import NetworkConfig

from .models import LedgerCall

MAX_RAW_AMOUNT = 2**256 - 1


def whitelist_call(position_manager: str, delegate: str, enabled: bool = True) -> LedgerCall:
    """Call on ``position_manager`` that lets ``delegate`` act for the sender."""

    if not delegate:
        raise ValidationError("Delegate address must be non-empty.")
    return LedgerCall(
        to_address=position_manager,
        method="whitelistDelegate",
        args=(delegate, enabled),
    )


def approve_call(config: NetworkConfig, token: Token, spender: str, amount: Decimal) -> LedgerCall:
    address = config.get_token_address(token)
    if address is None:
        raise ValidationError(f"{token} has no token contract to approve.")
    if amount < ZERO:
        raise ValidationError("Approval amount must be non-negative.")
    decimals = config.token(token).decimals
    return LedgerCall(
        to_address=address,
        method="approve",
        args=(spender, to_raw(amount, decimals)),
    )


def signed_change(change: Decimal) -> Tuple[int, bool]:
    """Split a change into an absolute ledger amount and an increase flag."""

    if is_close_sentinel(change):
        return MAX_RAW_AMOUNT, False
    return to_raw(absolute(change), PRECISION), change > ZERO


def encode_tag(tag: Optional[str]) -> str:
    if not tag:
        return ""
    return _to_hex(tag.encode("utf-8"))


def _to_hex(data: bytes) -> str:
    return "0x" + data.hex()
