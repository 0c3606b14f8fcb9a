"""Ledger payloads, authorization artifacts and dry-run output."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple

from position_core.tokens import Token

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_BYTES32 = "0x" + "00" * 32


@dataclass(frozen=True)
class PermitSignature:
    """Signed off-ledger spend authorization carried into a manage call."""

    token: str
    value: int
    deadline: int
    v: int
    r: str
    s: str

    @property
    def is_empty(self) -> bool:
        return self == EMPTY_PERMIT_SIGNATURE


EMPTY_PERMIT_SIGNATURE = PermitSignature(
    token=ZERO_ADDRESS,
    value=0,
    deadline=0,
    v=0,
    r=ZERO_BYTES32,
    s=ZERO_BYTES32,
)


@dataclass(frozen=True)
class PermitRequest:
    token: Token
    token_address: str
    token_name: str
    owner: str
    spender: str
    value: int
    nonce: int
    deadline: int
    chain_id: int


@dataclass(frozen=True)
class LedgerCall:
    to_address: str
    method: str
    args: Tuple[object, ...]
    value: int = 0
    gas_limit_multiplier: Decimal = Decimal(1)
    tag_data: str = ""


@dataclass(frozen=True)
class TransactionHandle:
    tx_id: str
    sender: str
    call: LedgerCall


@dataclass(frozen=True)
class DryRunTxResult:
    tx_id: str
    method: str
    success: bool
    gas_used: int
    cost_wei: int
    notes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DryRunResult:
    success: bool
    tx_results: Tuple[DryRunTxResult, ...]
    total_gas_used: int
    total_cost_wei: int
    notes: Tuple[str, ...] = ()
