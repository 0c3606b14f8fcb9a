from .calls import MAX_RAW_AMOUNT, approve_call, encode_tag, signed_change, whitelist_call
from .models import (
    EMPTY_PERMIT_SIGNATURE,
    DryRunResult,
    DryRunTxResult,
    LedgerCall,
    PermitRequest,
    PermitSignature,
    TransactionHandle,
)
from .protocols import LedgerClient, PermitSigner
from .signer import LocalPermitSigner
from .simulator import DryRunLedger, SimulationError
from .strategies import (
    ExecuteArgs,
    InterestRateStrategy,
    NativePeggedStrategy,
    UnderlyingCollateralStrategy,
    VaultStrategy,
    WrappedCappedCollateralStrategy,
    select_strategy,
)

__all__ = [
    "DryRunLedger",
    "DryRunResult",
    "DryRunTxResult",
    "EMPTY_PERMIT_SIGNATURE",
    "ExecuteArgs",
    "InterestRateStrategy",
    "LedgerCall",
    "LedgerClient",
    "LocalPermitSigner",
    "MAX_RAW_AMOUNT",
    "NativePeggedStrategy",
    "PermitRequest",
    "PermitSignature",
    "PermitSigner",
    "SimulationError",
    "TransactionHandle",
    "UnderlyingCollateralStrategy",
    "VaultStrategy",
    "WrappedCappedCollateralStrategy",
    "approve_call",
    "encode_tag",
    "select_strategy",
    "signed_change",
    "whitelist_call",
]
